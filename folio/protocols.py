"""Protocol definitions for Folio.

Build capabilities (blog, directory indexes, syntax highlighting, external
pipelines) are plain objects registered on the Builder. This module defines
the interface they share so the Builder can depend on it rather than on
concrete extensions.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .content import Resource
    from .extensions import BuildContext
    from .renderers import MarkdownOptions


@runtime_checkable
class Extension(Protocol):
    """Protocol for build extensions.

    Hooks are called in this order during a build:

    1. ``configure_markdown`` before the Markdown renderer is created.
    2. ``before_build`` before any source is loaded.
    3. ``manipulate_resources`` once the source tree is loaded.
    4. ``after_build`` once every resource is written to staging.

    ``abort`` is called instead of the remaining hooks when the build fails.
    """

    name: str

    @abstractmethod
    def configure_markdown(self, options: MarkdownOptions) -> None:
        """Adjust Markdown options before the renderer is created."""
        ...

    @abstractmethod
    def before_build(self, context: BuildContext) -> None:
        """Prepare for a build, e.g. start a process or claim a directory."""
        ...

    @abstractmethod
    def manipulate_resources(
        self, resources: list[Resource], context: BuildContext
    ) -> list[Resource]:
        """Return the resource list, possibly with resources added or rewritten."""
        ...

    @abstractmethod
    def after_build(self, context: BuildContext) -> None:
        """Finish work once rendered output is in the staging directory."""
        ...

    @abstractmethod
    def abort(self, context: BuildContext) -> None:
        """Release resources after a failed build."""
        ...
