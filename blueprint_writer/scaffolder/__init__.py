"""Blueprint scaffolder -- writes the Next.js tree for a blueprint.

Each writer owns one slice of the output tree and returns the paths it
actually changed, so re-running with an unchanged blueprint writes nothing.

Quick usage::

    from blueprint_writer.scaffolder import PageWriter, TemplateRenderer, DefaultViewRenderer

    renderer = TemplateRenderer()
    views = await DefaultViewRenderer(renderer).render(target, blueprint, code, None)
    pages = await PageWriter(renderer).write(target, blueprint, views.view_map)
"""

from blueprint_writer.scaffolder.apis import ApiWriter, build_auth_code
from blueprint_writer.scaffolder.architecture import ArchitectureWriter
from blueprint_writer.scaffolder.components import ComponentWriter
from blueprint_writer.scaffolder.defaultapp import DefaultAppWriter
from blueprint_writer.scaffolder.design import DesignWriter, merge_global_css
from blueprint_writer.scaffolder.media import (
    MediaOutcome,
    MediaResolution,
    MediaResolver,
    collect_media_refs,
    rewrite_media_refs,
)
from blueprint_writer.scaffolder.pages import PageWriter
from blueprint_writer.scaffolder.skeleton import SkeletonWriter, merge_package_json
from blueprint_writer.scaffolder.templates import TemplateRenderer
from blueprint_writer.scaffolder.views import DefaultViewRenderer

__all__ = [
    "ApiWriter",
    "ArchitectureWriter",
    "ComponentWriter",
    "DefaultAppWriter",
    "DefaultViewRenderer",
    "DesignWriter",
    "MediaOutcome",
    "MediaResolution",
    "MediaResolver",
    "PageWriter",
    "SkeletonWriter",
    "TemplateRenderer",
    "build_auth_code",
    "collect_media_refs",
    "merge_global_css",
    "merge_package_json",
    "rewrite_media_refs",
]
