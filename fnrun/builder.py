from __future__ import annotations

import logging

from .engine import Engine, EngineError, ImageNotFound
from .errors import BuildError
from .events import EventLog
from .packager import package_context
from .runtime import Function, FunctionTable
from .settings import Settings

logger = logging.getLogger("fnrun.builder")


class ImageBuilder:
    """Builds one image per function, always under the same tag."""

    def __init__(self, engine: Engine, table: FunctionTable, settings: Settings, events: EventLog):
        self.engine = engine
        self.table = table
        self.settings = settings
        self.events = events

    def build(self, function: Function) -> str:
        image = self.settings.image_for(function.name)
        # A failed (re)build must leave the function unbuildable until a later success.
        self.table.set_image(function.name, None)

        try:
            context = package_context(function.build_dir, spool_bytes=self.settings.context_spool_bytes)
        except OSError as e:
            self.events.error(f"Cannot package {function.build_dir}: {e}", function=function.name)
            raise BuildError(function.name, f"cannot package {function.build_dir}: {e}") from e

        with context:
            self._remove_existing(function.name, image)
            self._build(function.name, image, context)

        self.table.set_image(function.name, image)
        self.events.info(f"Built image {image}", function=function.name)
        return image

    def _remove_existing(self, name: str, image: str) -> None:
        try:
            self.engine.remove_image(image, force=True, prune_children=True)
            self.events.info(f"Removed previous image {image}", function=name)
        except ImageNotFound:
            pass
        except EngineError as e:
            raise BuildError(name, str(e)) from e

    def _build(self, name: str, image: str, context) -> None:
        error: str | None = None
        try:
            # Drain the whole stream: the daemon only completes the build while it is read.
            for chunk in self.engine.build_image(context, image):
                if "error" in chunk:
                    error = str(chunk.get("error") or "").strip() or "build failed"
                elif chunk.get("stream"):
                    logger.debug("%s: %s", image, str(chunk["stream"]).rstrip())
        except EngineError as e:
            self.events.error(f"Build of {image} failed: {e}", function=name)
            raise BuildError(name, str(e)) from e

        if error is not None:
            self.events.error(f"Build of {image} failed: {error}", function=name)
            raise BuildError(name, error)

    def build_all(self) -> None:
        """Build every function in configuration order; stops at the first failure."""
        for fn in self.table:
            self.events.info(f"Building image from {fn.build_dir}", function=fn.name)
            self.build(fn)
