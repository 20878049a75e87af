"""Seed a demo exam covering every question type and print its share token."""

from dotenv import load_dotenv

load_dotenv()

from examstack_app import create_app
from examstack_app.modules.catalog.interface import CatalogInterface

DEMO_QUESTIONS = [
    {
        'question_type': 'multiple_choice',
        'question_text': 'Which planet is known as the red planet?',
        'question_data': {'options': ['Venus', 'Mars', 'Jupiter'], 'correctAnswer': 1},
        'points': 2,
    },
    {
        'question_type': 'true_false',
        'question_text': 'Water boils at 100 degrees Celsius at sea level.',
        'question_data': {'correctAnswer': True},
        'points': 1,
    },
    {
        'question_type': 'fill_blank',
        'question_text': 'The capital of France is ____.',
        'question_data': {'correctAnswer': 'Paris', 'caseSensitive': False},
        'points': 1,
    },
    {
        'question_type': 'complete',
        'question_text': 'Complete: To be or not to ____.',
        'question_data': {'correctAnswer': 'be'},
        'points': 1,
    },
    {
        'question_type': 'matching',
        'question_text': 'Match each country with its capital.',
        'question_data': {'pairs': [
            {'left': 'Japan', 'right': 'Tokyo'},
            {'left': 'Egypt', 'right': 'Cairo'},
            {'left': 'Peru', 'right': 'Lima'},
        ]},
        'points': 3,
    },
    {
        'question_type': 'paragraph',
        'question_text': 'Read the paragraph and answer.',
        'question_data': {
            'paragraph': 'Amira walked to the market on Monday to buy oranges.',
            'subQuestions': [
                {'question': 'Who went to the market?', 'answer': 'Amira'},
                {'question': 'What did she buy?', 'answer': 'oranges'},
            ],
        },
        'points': 2,
    },
    {
        'question_type': 'translate',
        'question_text': 'Translate: Good morning',
        'question_data': {'direction': 'en_to_ar', 'correctAnswer': 'صباح الخير'},
        'points': 2,
    },
    {
        'question_type': 'written',
        'question_text': 'Describe your favourite season.',
        'question_data': {'sampleAnswer': 'I like autumn because ...'},
        'points': 5,
    },
    {
        'question_type': 'poll',
        'question_text': 'How difficult was this exam?',
        'question_data': {'options': ['Easy', 'Fair', 'Hard']},
        'points': 1,
    },
]


if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        exam = CatalogInterface.create_exam(
            teacher_id='demo-teacher',
            title='Demo exam',
            questions=DEMO_QUESTIONS,
            time_limit=10,
            attempt_limit=2,
            description='One question of every supported type.',
        )
        print(f"Created exam {exam.id}; join with POST /exam/api/join/{exam.share_link}")
