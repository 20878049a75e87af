"""Utilities for declaratively registering application modules.

The registry allows each blueprint/module to be described with metadata so that
module discovery and registration can be automated. A module package exposes a
``blueprint`` and may define ``setup_module(app)``, which is called before the
blueprint is registered so its routes and signal receivers are attached.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from flask import Blueprint, Flask
from werkzeug.utils import import_string


@dataclass(frozen=True)
class ModuleDefinition:
    """Describe how a blueprint-backed module is registered with the app."""

    import_path: str
    attribute: str = "blueprint"
    url_prefix: Optional[str] = None
    version: str = "1.0"
    csrf_exempt: bool = False

    def load_module(self):
        return import_string(self.import_path)

    def load_blueprint(self) -> Blueprint:
        """Import and return the blueprint described by this definition."""

        module = self.load_module()
        blueprint = getattr(module, self.attribute, None)
        if not isinstance(blueprint, Blueprint):
            raise TypeError(
                "Expected attribute '%s' in '%s' to be a Flask Blueprint, got %r instead"
                % (self.attribute, self.import_path, type(blueprint))
            )
        return blueprint


def register_modules(app: Flask, modules: Sequence[ModuleDefinition]) -> None:
    """Register all modules in the provided iterable with the Flask app."""

    from .extensions import csrf_protect

    for module in modules:
        package = module.load_module()
        if not getattr(package, "module_metadata", {}).get("enabled", True):
            app.logger.info("Skipping disabled module %s", module.import_path)
            continue

        setup = getattr(package, "setup_module", None)
        if callable(setup):
            setup(app)

        blueprint = module.load_blueprint()
        if module.csrf_exempt:
            # JSON API authenticated by identity headers, not cookies
            csrf_protect.exempt(blueprint)
        if blueprint.name not in app.blueprints:
            app.register_blueprint(blueprint, url_prefix=module.url_prefix)
        app.logger.debug(
            "Registered module %s (version %s) at prefix %s",
            module.import_path,
            module.version,
            module.url_prefix or "<root>",
        )


def register_default_modules(app: Flask) -> None:
    """Convenience helper that registers the built-in ExamStack modules."""

    register_modules(app, DEFAULT_MODULES)


DEFAULT_MODULES: Iterable[ModuleDefinition] = (
    ModuleDefinition("examstack_app.modules.attempts", url_prefix="/exam", version="1.0", csrf_exempt=True),
)
