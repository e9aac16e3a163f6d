"""Unit tests for template rendering.

Tests cover:
- Placeholder substitution with dotted paths
- Channel and locale override precedence
- Template lookup, caching and usage tracking
- Required variable validation
"""

import pytest

from infrastructure.notifications.errors import TemplateNotFoundError
from infrastructure.notifications.models import (
    Channel,
    NotificationType,
    TemplateOverride,
    TemplateTranslation,
    TemplateVariable,
)
from infrastructure.notifications.templates import (
    TemplateRenderer,
    render_string,
    select_templates,
)


@pytest.fixture
def renderer(repository, clock):
    return TemplateRenderer(repository, cache_ttl_seconds=300, clock=clock)


@pytest.fixture
def layered_template(template_factory):
    """Template with channel, locale and locale+channel overrides."""
    return template_factory(
        title_template="T",
        content_template="C",
        channel_templates={"sms": TemplateOverride(content="C-sms")},
        translations={
            "fr": TemplateTranslation(
                title="T-fr",
                content="C-fr",
                channels={"sms": TemplateOverride(content="C-fr-sms")},
            )
        },
    )


@pytest.mark.unit
class TestRenderString:
    """Tests for placeholder substitution."""

    def test_simple(self):
        assert render_string("Hi {{userName}}", {"userName": "Alice"}) == "Hi Alice"

    def test_missing_key_left_verbatim(self):
        """Unresolved placeholders stay in the output literally."""
        assert render_string("Hi {{userName}}", {}) == "Hi {{userName}}"

    def test_none_value_left_verbatim(self):
        assert render_string("Hi {{userName}}", {"userName": None}) == "Hi {{userName}}"

    def test_dotted_path(self):
        data = {"user": {"profile": {"name": "Alice"}}}
        assert render_string("Hi {{ user.profile.name }}", data) == "Hi Alice"

    def test_list_index(self):
        data = {"items": [{"label": "Milk"}, {"label": "Eggs"}]}
        assert render_string("{{items.1.label}}", data) == "Eggs"

    def test_out_of_range_index_left_verbatim(self):
        assert render_string("{{items.5}}", {"items": [1]}) == "{{items.5}}"

    def test_non_string_values(self):
        assert render_string("{{n}} left", {"n": 3}) == "3 left"

    def test_no_data(self):
        assert render_string("Hi {{userName}}", None) == "Hi {{userName}}"

    @pytest.mark.parametrize(
        "template",
        ["Hi {{userName.upper}}", "{{userName.__class__}}", "{{n.real}}", "{{items.0.x}}"],
    )
    def test_path_through_scalar_left_verbatim(self, template):
        """Object attributes are never reachable from a placeholder."""
        data = {"userName": "Alice", "n": 3, "items": ["Milk"]}

        assert render_string(template, data) == template


@pytest.mark.unit
class TestSelectTemplates:
    """Tests for channel/locale override precedence."""

    def test_default(self, layered_template):
        assert select_templates(layered_template) == ("T", "C")

    def test_channel_override(self, layered_template):
        """Channel override replaces only the fields it sets."""
        assert select_templates(layered_template, channel=Channel.SMS) == ("T", "C-sms")

    def test_locale_override(self, layered_template):
        assert select_templates(layered_template, locale="fr") == ("T-fr", "C-fr")

    def test_locale_channel_override_wins(self, layered_template):
        """Translation channel override beats channel override and translation."""
        assert select_templates(layered_template, channel=Channel.SMS, locale="fr") == (
            "T-fr",
            "C-fr-sms",
        )

    def test_locale_without_channel_entry(self, layered_template):
        assert select_templates(layered_template, channel=Channel.EMAIL, locale="fr") == (
            "T-fr",
            "C-fr",
        )

    def test_region_falls_back_to_language(self, layered_template):
        """fr-CA uses the fr translation when no fr-CA one exists."""
        assert select_templates(layered_template, locale="fr_CA") == ("T-fr", "C-fr")

    def test_unknown_locale_uses_default(self, layered_template):
        assert select_templates(layered_template, locale="de") == ("T", "C")


@pytest.mark.unit
class TestTemplateRenderer:
    """Tests for TemplateRenderer."""

    def test_render_stored_template(self, renderer, repository, template_factory):
        repository.save_template(template_factory())

        rendered = renderer.render(
            NotificationType.EXPIRY_ALERT, data={"item": {"name": "Milk"}, "days": 2}
        )

        assert rendered.title == "Milk expires soon"
        assert rendered.content == "Milk expires in 2 days"

    def test_explicit_content_skips_lookup(self, renderer):
        """Explicit content renders without any stored template."""
        rendered = renderer.render(
            NotificationType.OTHER,
            data={"name": "Alice"},
            title="Hello {{name}}",
            content="Welcome {{name}}",
        )

        assert (rendered.title, rendered.content) == ("Hello Alice", "Welcome Alice")

    def test_missing_template(self, renderer):
        with pytest.raises(TemplateNotFoundError):
            renderer.render(NotificationType.EXPIRY_ALERT, data={})

    def test_inactive_template_ignored(self, renderer, repository, template_factory):
        repository.save_template(template_factory(is_active=False))

        with pytest.raises(TemplateNotFoundError):
            renderer.render(NotificationType.EXPIRY_ALERT, data={})

    def test_usage_recorded_when_asked(self, renderer, repository, template_factory, clock):
        repository.save_template(template_factory())

        renderer.render(NotificationType.EXPIRY_ALERT, data={}, record_usage=True)

        stored = repository.get_template(NotificationType.EXPIRY_ALERT)
        assert stored.usage_count == 1
        assert stored.last_used_at == clock()

    def test_preview_does_not_count_usage(self, renderer, repository, template_factory):
        repository.save_template(template_factory())

        renderer.preview(NotificationType.EXPIRY_ALERT, data={"item": {"name": "Milk"}})

        assert repository.get_template(NotificationType.EXPIRY_ALERT).usage_count == 0

    def test_cache_serves_until_ttl(self, renderer, repository, template_factory, clock):
        """Out-of-band edits are seen only after the cache entry expires."""
        repository.save_template(template_factory(title_template="old"))
        assert renderer.get_template(NotificationType.EXPIRY_ALERT).title_template == "old"

        repository.save_template(template_factory(title_template="new"))
        assert renderer.get_template(NotificationType.EXPIRY_ALERT).title_template == "old"

        clock.advance(seconds=301)
        assert renderer.get_template(NotificationType.EXPIRY_ALERT).title_template == "new"

    def test_upsert_invalidates_cache(self, renderer, template_factory, clock):
        """Updates through the renderer are visible immediately."""
        renderer.upsert_template(template_factory(title_template="old"))
        renderer.get_template(NotificationType.EXPIRY_ALERT)

        stored = renderer.upsert_template(template_factory(title_template="new"))

        assert stored.updated_at == clock()
        assert renderer.get_template(NotificationType.EXPIRY_ALERT).title_template == "new"

    def test_delete_invalidates_cache(self, renderer, template_factory):
        renderer.upsert_template(template_factory())
        renderer.get_template(NotificationType.EXPIRY_ALERT)

        assert renderer.delete_template(NotificationType.EXPIRY_ALERT) is True
        assert renderer.get_template(NotificationType.EXPIRY_ALERT) is None
        assert renderer.delete_template(NotificationType.EXPIRY_ALERT) is False

    def test_validate_template_data(self, renderer, repository, template_factory):
        """Only required variables that are missing or None are reported."""
        repository.save_template(
            template_factory(
                variables=[
                    TemplateVariable(name="item.name", required=True),
                    TemplateVariable(name="days", required=True),
                    TemplateVariable(name="note"),
                ]
            )
        )

        missing = renderer.validate_template_data(
            NotificationType.EXPIRY_ALERT, {"item": {"name": "Milk"}, "days": None}
        )

        assert missing == ["days"]

    def test_template_stats_sorted_by_usage(self, renderer, repository, template_factory):
        repository.save_template(template_factory(type=NotificationType.EXPIRY_ALERT))
        repository.save_template(template_factory(type=NotificationType.BUDGET_WARNING))
        renderer.render(NotificationType.BUDGET_WARNING, data={}, record_usage=True)

        stats = renderer.template_stats()

        assert [s.type for s in stats] == [
            NotificationType.BUDGET_WARNING,
            NotificationType.EXPIRY_ALERT,
        ]
        assert stats[0].usage_count == 1
