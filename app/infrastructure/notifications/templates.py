"""Template rendering with channel/locale overrides and a TTL cache.

Placeholders use ``{{ name }}`` syntax with dotted paths (``{{user.name}}``,
``{{items.0.label}}``). A placeholder whose path does not resolve, or
resolves to None, is left in the output verbatim; rendering never fails
because of missing data.
"""

import re
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple

from infrastructure.logging import get_module_logger
from infrastructure.notifications.errors import TemplateNotFoundError
from infrastructure.notifications.models import (
    Channel,
    Clock,
    NotificationTemplate,
    NotificationType,
    TemplateOverride,
    TemplateStats,
    utc_now,
)
from infrastructure.notifications.repository import NotificationRepository

logger = get_module_logger()

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([\w\-]+(?:\.[\w\-]+)*)\s*\}\}")

_MISSING = object()


def lookup_path(data: Any, path: str) -> Any:
    """Resolve a dotted path through mappings and sequences.

    Returns the module-private ``_MISSING`` sentinel when any segment fails,
    including a segment applied to a scalar.
    """
    current = data
    for segment in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(segment, _MISSING)
        elif isinstance(current, (list, tuple)):
            if not segment.isdigit() or int(segment) >= len(current):
                return _MISSING
            current = current[int(segment)]
        else:
            return _MISSING
        if current is _MISSING:
            return _MISSING
    return current


def render_string(template: str, data: Optional[Mapping[str, Any]]) -> str:
    """Substitute placeholders in ``template`` from ``data``."""
    if not template:
        return template
    values = data or {}

    def _replace(match: re.Match) -> str:
        value = lookup_path(values, match.group(1))
        if value is _MISSING or value is None:
            return match.group(0)
        return str(value)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


@dataclass
class RenderedContent:
    title: str
    content: str


def _locale_candidates(locale: Optional[str]) -> List[str]:
    if not locale:
        return []
    normalized = locale.replace("_", "-")
    candidates = [normalized, normalized.lower()]
    if "-" in normalized:
        candidates.append(normalized.split("-", 1)[0].lower())
    return candidates


def select_templates(
    template: NotificationTemplate,
    channel: Optional[Channel] = None,
    locale: Optional[str] = None,
) -> Tuple[str, str]:
    """Pick the title/content templates for a (channel, locale) pair.

    Each field is resolved independently, first match wins:
    translation channel override, channel override, translation, default.
    """
    translation = None
    for candidate in _locale_candidates(locale):
        translation = template.translations.get(candidate)
        if translation is not None:
            break

    layers: List[Optional[TemplateOverride]] = []
    if translation is not None and channel is not None:
        layers.append(translation.channels.get(channel))
    if channel is not None:
        layers.append(template.channel_templates.get(channel))
    layers.append(translation)

    title = template.title_template
    content = template.content_template
    for layer in reversed([layer for layer in layers if layer is not None]):
        if layer.title is not None:
            title = layer.title
        if layer.content is not None:
            content = layer.content
    return title, content


class TemplateRenderer:
    """Renders notification content from stored templates.

    Active templates are cached per type for ``cache_ttl_seconds``; the cache
    entry is dropped when the template is updated or deleted through this
    renderer.

    Example:
        renderer = TemplateRenderer(repository, cache_ttl_seconds=300)
        rendered = renderer.render(
            NotificationType.EXPIRY_ALERT,
            data={"item": {"name": "Milk"}},
            locale="fr",
            channel=Channel.SMS,
        )
    """

    def __init__(
        self,
        repository: NotificationRepository,
        cache_ttl_seconds: int = 300,
        clock: Clock = utc_now,
    ):
        self._repository = repository
        self._ttl = timedelta(seconds=cache_ttl_seconds)
        self._clock = clock
        self._cache: Dict[NotificationType, Tuple[datetime, Optional[NotificationTemplate]]] = {}
        self._lock = threading.Lock()

    def get_template(self, notification_type: NotificationType) -> Optional[NotificationTemplate]:
        """Active template for the type, or None."""
        now = self._clock()
        with self._lock:
            cached = self._cache.get(notification_type)
            if cached is not None and cached[0] > now:
                return cached[1]

        template = self._repository.get_template(notification_type)
        if template is not None and not template.is_active:
            template = None

        with self._lock:
            self._cache[notification_type] = (now + self._ttl, template)
        return template

    def render(
        self,
        notification_type: NotificationType,
        data: Optional[Mapping[str, Any]] = None,
        title: Optional[str] = None,
        content: Optional[str] = None,
        locale: Optional[str] = None,
        channel: Optional[Channel] = None,
        record_usage: bool = False,
    ) -> RenderedContent:
        """Render title and content.

        An explicit title/content pair is rendered with the same substitution
        and the template lookup is skipped.

        Raises:
            TemplateNotFoundError: no explicit content and no active template.
        """
        if title is not None and content is not None:
            return RenderedContent(render_string(title, data), render_string(content, data))

        template = self.get_template(notification_type)
        if template is None:
            raise TemplateNotFoundError(notification_type.value)

        title_template, content_template = select_templates(template, channel, locale)
        rendered = RenderedContent(
            render_string(title_template, data),
            render_string(content_template, data),
        )

        if record_usage:
            self._repository.record_template_usage(notification_type, self._clock())

        return rendered

    def preview(
        self,
        notification_type: NotificationType,
        data: Optional[Mapping[str, Any]] = None,
        locale: Optional[str] = None,
        channel: Optional[Channel] = None,
    ) -> RenderedContent:
        """Render without counting usage."""
        return self.render(notification_type, data, locale=locale, channel=channel)

    def validate_template_data(
        self, notification_type: NotificationType, data: Optional[Mapping[str, Any]]
    ) -> List[str]:
        """Names of required template variables missing from ``data``."""
        template = self.get_template(notification_type)
        if template is None:
            raise TemplateNotFoundError(notification_type.value)
        values = data or {}
        return [
            variable.name
            for variable in template.variables
            if variable.required and lookup_path(values, variable.name) in (_MISSING, None)
        ]

    def upsert_template(self, template: NotificationTemplate) -> NotificationTemplate:
        stored = template.model_copy(update={"updated_at": self._clock()})
        self._repository.save_template(stored)
        self.invalidate(template.type)
        logger.info("template_saved", notification_type=template.type.value)
        return stored

    def delete_template(self, notification_type: NotificationType) -> bool:
        deleted = self._repository.delete_template(notification_type)
        self.invalidate(notification_type)
        if deleted:
            logger.info("template_deleted", notification_type=notification_type.value)
        return deleted

    def template_stats(self) -> List[TemplateStats]:
        return [
            TemplateStats(
                type=t.type,
                usage_count=t.usage_count,
                last_used_at=t.last_used_at,
                is_active=t.is_active,
            )
            for t in sorted(
                self._repository.list_templates(), key=lambda t: t.usage_count, reverse=True
            )
        ]

    def invalidate(self, notification_type: Optional[NotificationType] = None) -> None:
        with self._lock:
            if notification_type is None:
                self._cache.clear()
            else:
                self._cache.pop(notification_type, None)
