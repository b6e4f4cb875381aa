"""Tests for the schema registry: components, content types and fields."""

import pytest

from cms.core import (
    BundleError,
    CircularDependencyError,
    ComponentNotFoundError,
    ContentTypeNotFoundError,
    DuplicateNameError,
    FieldNotFoundError,
    InUseError,
    InvalidApiIdError,
    InvalidFieldDefinitionError,
    InvalidUpdateError,
    NotFoundError,
    UnknownFieldTypeError,
)
from cms.core.models import ContentTypeKind
from cms.schema import SchemaRegistry, slugify_api_id
from cms.storage import MemoryStore


def component_field(name, component_id, **extra):
    return {"name": name, "type": "component", "componentId": component_id, **extra}


@pytest.fixture
def seo(schema):
    component = schema.create_component("seo", "SEO", "shared")
    schema.add_field(component.id, {"name": "metaTitle", "type": "text"})
    schema.add_field(component.id, {"name": "metaDescription", "type": "longtext"})
    return schema.get_component(component.id)


@pytest.fixture
def article(schema):
    return schema.create_content_type("Article", "Article")


class TestComponents:
    """Component CRUD."""

    def test_create_component(self, schema):
        component = schema.create_component("hero", "Hero", "sections", icon="Star")
        assert component.id == "id-1"
        assert component.fields == []
        assert component.usage_count == 0
        assert schema.get_component_by_name("hero") == component

    def test_duplicate_name(self, schema):
        schema.create_component("hero", "Hero", "sections")
        with pytest.raises(DuplicateNameError):
            schema.create_component("hero", "Other", "misc")

    def test_update_component_accepts_camel_case(self, schema, clock):
        component = schema.create_component("hero", "Hero", "sections")
        clock.advance(minutes=1)
        updated = schema.update_component(
            component.id, {"displayName": "Big Hero", "isRepeatable": True}
        )
        assert updated.display_name == "Big Hero"
        assert updated.is_repeatable is True
        assert updated.updated_at > component.updated_at

    def test_update_rejects_rename_collision(self, schema):
        schema.create_component("hero", "Hero", "sections")
        other = schema.create_component("card", "Card", "sections")
        with pytest.raises(DuplicateNameError):
            schema.update_component(other.id, {"name": "hero"})

    def test_update_rejects_bookkeeping_members(self, schema):
        component = schema.create_component("hero", "Hero", "sections")
        with pytest.raises(InvalidUpdateError):
            schema.update_component(component.id, {"usageCount": 5})

    def test_update_missing_component(self, schema):
        with pytest.raises(ComponentNotFoundError):
            schema.update_component("nope", {"displayName": "x"})

    def test_delete_unused_component(self, schema):
        component = schema.create_component("hero", "Hero", "sections")
        schema.delete_component(component.id)
        assert schema.get_component(component.id) is None

    def test_delete_component_in_use(self, schema, seo, article):
        schema.add_field(article.id, component_field("seo", seo.id))
        with pytest.raises(InUseError):
            schema.delete_component(seo.id)
        assert schema.get_component(seo.id) is not None

    def test_queries(self, schema):
        schema.create_component("hero", "Hero Banner", "sections", is_repeatable=True)
        schema.create_component("seo", "SEO", "shared", description="Search meta")
        assert [c.name for c in schema.repeatable_components()] == ["hero"]
        assert [c.name for c in schema.single_use_components()] == ["seo"]
        assert [c.name for c in schema.components_by_category("shared")] == ["seo"]
        assert [c.name for c in schema.search_components("banner")] == ["hero"]
        assert [c.name for c in schema.search_components("search")] == ["seo"]
        assert schema.categories() == ["sections", "shared"]

    def test_component_stats(self, schema, seo, article):
        schema.create_component("hero", "Hero", "sections", is_repeatable=True)
        schema.add_field(article.id, component_field("seo", seo.id))

        stats = schema.component_stats()
        assert stats.total == 2
        assert stats.repeatable == 1
        assert stats.total_fields == 2
        assert stats.most_used.id == seo.id
        assert stats.categories == {"shared": 1, "sections": 1}

    def test_export_and_import_component(self, schema, seo):
        exported = schema.export_component(seo.id)
        assert exported["version"] == "1.0.0"
        assert exported["displayName"] == "SEO"

        other = SchemaRegistry(MemoryStore())
        imported = other.import_component(exported)
        assert imported.name == "seo"
        assert imported.fields == []

    def test_import_component_requires_metadata(self, schema):
        with pytest.raises(BundleError):
            schema.import_component({"name": "x", "category": "misc"})


class TestContentTypes:
    """Content type CRUD and API ids."""

    def test_api_id_derived_from_display_name(self, schema):
        content_type = schema.create_content_type("BlogPost", "Blog Post")
        assert content_type.api_id == "blog-post"
        assert content_type.kind == ContentTypeKind.COLLECTION

    def test_slugify(self):
        assert slugify_api_id("  Hello,  World! 2 ") == "hello-world-2"

    def test_invalid_api_id(self, schema):
        with pytest.raises(InvalidApiIdError):
            schema.create_content_type("Post", "Post", api_id="Bad_Id")

    def test_duplicate_api_id(self, schema):
        schema.create_content_type("Post", "Post")
        with pytest.raises(DuplicateNameError):
            schema.create_content_type("Post2", "Other", api_id="post")

    def test_single_and_collection(self, schema):
        schema.create_content_type("Home", "Home", kind="single")
        schema.create_content_type("Post", "Post")
        assert [t.api_id for t in schema.single_types()] == ["home"]
        assert [t.api_id for t in schema.collection_types()] == ["post"]
        stats = schema.content_type_stats()
        assert (stats.total, stats.single_types, stats.collection_types) == (2, 1, 1)

    def test_update_api_id_is_checked(self, schema):
        schema.create_content_type("Post", "Post")
        page = schema.create_content_type("Page", "Page")
        with pytest.raises(DuplicateNameError):
            schema.update_content_type(page.id, {"apiId": "post"})
        with pytest.raises(InvalidApiIdError):
            schema.update_content_type(page.id, {"apiId": "-page"})
        assert schema.update_content_type(page.id, {"apiId": "pages"}).api_id == "pages"

    def test_delete_with_entries_refused(self, schema, article):
        schema.adjust_entry_count(article.id, +1)
        with pytest.raises(InUseError):
            schema.delete_content_type(article.id)

    def test_delete_releases_component_usage(self, schema, seo, article):
        schema.add_field(article.id, component_field("seo", seo.id))
        schema.delete_content_type(article.id)
        assert schema.get_content_type(article.id) is None
        assert schema.usage_count(seo.id) == 0
        assert schema.used_in(seo.id) == set()

    def test_entry_count_never_negative(self, schema, article):
        assert schema.adjust_entry_count(article.id, -3).entry_count == 0

    def test_missing_content_type(self, schema):
        with pytest.raises(ContentTypeNotFoundError):
            schema.delete_content_type("nope")


class TestFields:
    """Adding, updating, removing and reordering fields."""

    def test_scenario_component_usage(self, schema, seo, article):
        schema.add_field(article.id, component_field("seo", seo.id))
        assert schema.usage_count(seo.id) == 1
        assert schema.used_in(seo.id) == {article.id}
        assert [t.id for t in schema.content_types_using(seo.id)] == [article.id]

    def test_self_reference_is_circular(self, schema):
        component = schema.create_component("a", "A", "misc")
        with pytest.raises(CircularDependencyError):
            schema.add_field(component.id, component_field("self", component.id))
        assert schema.get_component(component.id).fields == []

    def test_two_component_cycle(self, schema):
        x = schema.create_component("x", "X", "misc")
        y = schema.create_component("y", "Y", "misc")
        schema.add_field(x.id, component_field("toY", y.id))
        with pytest.raises(CircularDependencyError):
            schema.add_field(y.id, component_field("toX", x.id))
        assert schema.get_component(y.id).fields == []
        assert schema.usage_count(x.id) == 0

    def test_longer_cycle(self, schema):
        a = schema.create_component("a", "A", "misc")
        b = schema.create_component("b", "B", "misc")
        c = schema.create_component("c", "C", "misc")
        schema.add_field(a.id, component_field("b", b.id))
        schema.add_field(b.id, component_field("c", c.id))
        with pytest.raises(CircularDependencyError):
            schema.add_field(c.id, {"name": "a", "type": "repeatable-component", "componentId": a.id})

    def test_missing_component_reference(self, schema, article):
        with pytest.raises(ComponentNotFoundError):
            schema.add_field(article.id, component_field("seo", "missing"))

    def test_component_field_needs_target(self, schema, article):
        with pytest.raises(InvalidFieldDefinitionError):
            schema.add_field(article.id, {"name": "seo", "type": "component"})

    def test_enumeration_needs_values(self, schema, article):
        with pytest.raises(InvalidFieldDefinitionError):
            schema.add_field(article.id, {"name": "color", "type": "enumeration"})

    def test_dynamic_zone_needs_allowed_components(self, schema, article):
        with pytest.raises(InvalidFieldDefinitionError):
            schema.add_field(article.id, {"name": "blocks", "type": "dynamic-zone"})

    def test_dynamic_zone_components_must_exist(self, schema, article):
        with pytest.raises(ComponentNotFoundError):
            schema.add_field(
                article.id,
                {"name": "blocks", "type": "dynamic-zone", "allowedComponents": ["nope"]},
            )

    def test_relation_needs_target(self, schema, article):
        with pytest.raises(InvalidFieldDefinitionError):
            schema.add_field(article.id, {"name": "author", "type": "relation"})

    def test_uid_target_must_be_sibling(self, schema, article):
        with pytest.raises(InvalidFieldDefinitionError):
            schema.add_field(article.id, {"name": "slug", "type": "uid", "uidTarget": "title"})
        schema.add_field(article.id, {"name": "title", "type": "text"})
        slug = schema.add_field(
            article.id, {"name": "slug", "type": "uid", "uidTarget": "title"}
        )
        assert slug.uid_target == "title"

    def test_bad_field_names(self, schema, article):
        with pytest.raises(InvalidFieldDefinitionError):
            schema.add_field(article.id, {"name": "", "type": "text"})
        with pytest.raises(InvalidFieldDefinitionError):
            schema.add_field(article.id, {"name": "1st", "type": "text"})

    def test_unknown_type(self, schema, article):
        with pytest.raises(UnknownFieldTypeError):
            schema.add_field(article.id, {"name": "spot", "type": "geo"})

    def test_inverted_bounds(self, schema, article):
        with pytest.raises(InvalidFieldDefinitionError):
            schema.add_field(
                article.id, {"name": "t", "type": "text", "minLength": 5, "maxLength": 2}
            )

    def test_duplicate_field_name(self, schema, article):
        schema.add_field(article.id, {"name": "title", "type": "text"})
        with pytest.raises(DuplicateNameError):
            schema.add_field(article.id, {"name": "title", "type": "number"})

    def test_unknown_owner(self, schema):
        with pytest.raises(NotFoundError):
            schema.add_field("nope", {"name": "title", "type": "text"})

    def test_remove_is_symmetric_with_add(self, schema, seo, article):
        schema.add_field(article.id, component_field("seo", seo.id))
        schema.add_field(article.id, component_field("seo2", seo.id))
        assert schema.usage_count(seo.id) == 2
        assert schema.used_in(seo.id) == {article.id}

        schema.remove_field(article.id, "seo")
        assert schema.usage_count(seo.id) == 1
        assert schema.used_in(seo.id) == {article.id}

        schema.remove_field(article.id, "seo2")
        assert schema.usage_count(seo.id) == 0
        assert schema.used_in(seo.id) == set()
        schema.delete_component(seo.id)

    def test_remove_missing_field(self, schema, article):
        with pytest.raises(FieldNotFoundError):
            schema.remove_field(article.id, "nope")

    def test_update_field_moves_usage(self, schema, seo, article):
        other = schema.create_component("meta", "Meta", "shared")
        schema.add_field(article.id, component_field("seo", seo.id))

        schema.update_field(article.id, "seo", {"componentId": other.id})

        assert schema.usage_count(seo.id) == 0
        assert schema.usage_count(other.id) == 1
        assert schema.used_in(other.id) == {article.id}

    def test_update_field_type_change_drops_variant_members(self, schema, article):
        schema.add_field(article.id, {"name": "title", "type": "text", "maxLength": 10, "required": True})
        updated = schema.update_field(article.id, "title", {"type": "boolean"})
        assert updated.type == "boolean"
        assert updated.required is True

    def test_update_field_rename_collision(self, schema, article):
        schema.add_field(article.id, {"name": "title", "type": "text"})
        schema.add_field(article.id, {"name": "body", "type": "richtext"})
        with pytest.raises(DuplicateNameError):
            schema.update_field(article.id, "body", {"name": "title"})

    def test_update_field_rejects_cycle(self, schema):
        x = schema.create_component("x", "X", "misc")
        y = schema.create_component("y", "Y", "misc")
        schema.add_field(x.id, component_field("toY", y.id))
        schema.add_field(y.id, {"name": "label", "type": "text"})
        with pytest.raises(InvalidFieldDefinitionError):
            schema.update_field(y.id, "label", {"type": "component"})
        with pytest.raises(CircularDependencyError):
            schema.update_field(y.id, "label", {"type": "component", "componentId": x.id})

    def test_reorder_keeps_every_field(self, schema, article):
        for name in ("a", "b", "c", "d"):
            schema.add_field(article.id, {"name": name, "type": "text"})

        owner = schema.reorder_fields(article.id, ["c", "ghost", "a", "c"])

        assert [f.name for f in owner.fields] == ["c", "a", "b", "d"]
        assert [f.name for f in schema.get_content_type(article.id).fields] == [
            "c",
            "a",
            "b",
            "d",
        ]

    def test_component_owner_usage(self, schema, seo):
        page = schema.create_component("page", "Page", "layout")
        schema.add_field(page.id, component_field("seo", seo.id))
        assert schema.used_in(seo.id) == {page.id}
        assert schema.content_types_using(seo.id) == []

        schema.delete_component(page.id)
        assert schema.usage_count(seo.id) == 0


class TestPersistence:
    """Registries rebuild from the store."""

    def test_reload_from_store(self, store, schema, seo, article, clock, ids):
        schema.add_field(article.id, component_field("seo", seo.id))

        fresh = SchemaRegistry(store, clock=clock, id_factory=ids)
        assert fresh.get_component(seo.id) == schema.get_component(seo.id)
        assert fresh.get_content_type(article.id) == schema.get_content_type(article.id)

    def test_failed_operation_leaves_store_untouched(self, store, schema, seo):
        before = store.get("components")
        with pytest.raises(CircularDependencyError):
            schema.add_field(seo.id, component_field("loop", seo.id))
        assert store.get("components") == before

    def test_subscribers_see_new_state(self, schema):
        seen = []
        schema.subscribe_components(lambda components: seen.append(len(components)))
        schema.create_component("a", "A", "misc")
        schema.create_component("b", "B", "misc")
        assert seen == [1, 2]
