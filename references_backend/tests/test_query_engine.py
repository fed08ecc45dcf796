import pytest

from references_backend.query_engine import QueryEngine, compile_request
from references_backend.schemas import SearchRequest


@pytest.fixture(params=["native", "memory"])
def engine_for(request, repository):
    return QueryEngine(repository, strategy=request.param)


def ids(results):
    return [r.id for r in results]


@pytest.fixture
def catalog(add_reference, add_screenshot):
    react = add_reference(
        "React Documentation", age=5, url="https://react.dev",
        tags=["react", "javascript"], description="Hooks and components",
    )
    ts = add_reference(
        "TypeScript Handbook", age=3, tags=["typescript", "javascript"],
        notes="Read the generics chapter",
    )
    dribbble = add_reference("Dribbble shots", age=1, url="", tags=["UI", "inspiration"])
    bare = add_reference("Untitled board", age=8, url=None, description=None, notes=None)
    add_screenshot(react.id)
    add_screenshot(react.id)
    add_screenshot(dribbble.id)
    add_screenshot(None)
    return {"react": react, "ts": ts, "dribbble": dribbble, "bare": bare}


def test_empty_request_lists_everything_newest_first(engine_for, catalog):
    results = engine_for.search(SearchRequest())
    assert ids(results) == [
        catalog["dribbble"].id, catalog["ts"].id, catalog["react"].id, catalog["bare"].id
    ]


def test_ties_on_updated_at_fall_back_to_id(engine_for, add_reference):
    first = add_reference("first", age=2)
    second = add_reference("second", age=2)
    third = add_reference("third", age=2)
    assert ids(engine_for.search(SearchRequest())) == [third.id, second.id, first.id]


def test_list_references_matches_empty_search(engine_for, catalog):
    assert ids(engine_for.list_references()) == ids(engine_for.search(SearchRequest()))


def test_tags_require_every_requested_tag(engine_for, catalog):
    both = engine_for.search(SearchRequest(tags=["javascript"]))
    assert ids(both) == [catalog["ts"].id, catalog["react"].id]

    only_react = engine_for.search(SearchRequest(tags=["react", "javascript"]))
    assert ids(only_react) == [catalog["react"].id]

    assert engine_for.search(SearchRequest(tags=["react", "typescript"])) == []


def test_tags_are_case_sensitive(engine_for, catalog):
    assert ids(engine_for.search(SearchRequest(tags=["UI"]))) == [catalog["dribbble"].id]
    assert engine_for.search(SearchRequest(tags=["ui"])) == []


def test_duplicate_tags_are_tolerated(engine_for, add_reference):
    ref = add_reference("dup", tags=["a", "a", "b"])
    assert ids(engine_for.search(SearchRequest(tags=["a", "a"]))) == [ref.id]


def test_empty_tag_list_is_no_constraint(engine_for, catalog):
    assert len(engine_for.search(SearchRequest(tags=[]))) == 4


def test_query_matches_title_case_insensitively(engine_for, catalog):
    results = engine_for.search(SearchRequest(query="typescript"))
    assert ids(results) == [catalog["ts"].id]


def test_query_matches_description_and_notes(engine_for, catalog):
    assert ids(engine_for.search(SearchRequest(query="HOOKS"))) == [catalog["react"].id]
    assert ids(engine_for.search(SearchRequest(query="generics"))) == [catalog["ts"].id]


def test_query_is_trimmed_and_blank_matches_all(engine_for, catalog):
    assert ids(engine_for.search(SearchRequest(query="  typescript  "))) == [catalog["ts"].id]
    assert len(engine_for.search(SearchRequest(query="   "))) == 4


def test_query_wildcards_are_literal(engine_for, add_reference):
    percent = add_reference("100% coverage")
    add_reference("100 percent coverage")
    assert ids(engine_for.search(SearchRequest(query="100%"))) == [percent.id]
    assert engine_for.search(SearchRequest(query="a_b")) == []


def test_has_url_partitions_references(engine_for, catalog):
    with_url = ids(engine_for.search(SearchRequest(has_url=True)))
    without_url = ids(engine_for.search(SearchRequest(has_url=False)))
    assert with_url == [catalog["react"].id]
    assert without_url == [catalog["dribbble"].id, catalog["ts"].id, catalog["bare"].id]
    assert not set(with_url) & set(without_url)


def test_has_screenshots(engine_for, catalog):
    owners = ids(engine_for.search(SearchRequest(has_screenshots=True)))
    others = ids(engine_for.search(SearchRequest(has_screenshots=False)))
    assert owners == [catalog["dribbble"].id, catalog["react"].id]
    assert others == [catalog["ts"].id, catalog["bare"].id]


def test_categories_are_anded(engine_for, catalog):
    request = SearchRequest(query="o", tags=["javascript"], has_url=False, has_screenshots=False)
    assert ids(engine_for.search(request)) == [catalog["ts"].id]

    request = SearchRequest(tags=["javascript"], has_screenshots=True, has_url=True)
    assert ids(engine_for.search(request)) == [catalog["react"].id]


def test_results_always_carry_tag_lists(engine_for, add_reference):
    add_reference("no tags", tags=None)
    assert engine_for.search(SearchRequest())[0].tags == []
    assert engine_for.search(SearchRequest(has_url=False))[0].tags == []


def test_unsupported_dialect_falls_back_to_memory(repository, catalog, monkeypatch):
    monkeypatch.setattr(type(repository), "dialect_name", property(lambda self: "mssql"))
    predicates = compile_request(SearchRequest(tags=["javascript"]), "mssql")
    assert predicates[0].clause is None

    results = QueryEngine(repository, strategy="native").search(SearchRequest(tags=["javascript"]))
    assert ids(results) == [catalog["ts"].id, catalog["react"].id]


def test_compile_skips_absent_categories():
    assert compile_request(SearchRequest(), "sqlite") == []
    categories = [p.category for p in compile_request(
        SearchRequest(query="x", tags=["a"], has_url=False, has_screenshots=True), "sqlite"
    )]
    assert categories == ["query", "tags", "has_url", "has_screenshots"]


def test_unknown_strategy_is_rejected(repository):
    with pytest.raises(ValueError):
        QueryEngine(repository, strategy="fuzzy")


def test_query_folds_non_ascii_case(engine_for, add_reference):
    ecran = add_reference("Écran de connexion", age=2)
    strasse = add_reference("Login", age=1, notes="Formular für die STRASSE")
    add_reference("Ecran plat", age=3)

    assert ids(engine_for.search(SearchRequest(query="écran"))) == [ecran.id]
    assert ids(engine_for.search(SearchRequest(query="ÉCRAN DE"))) == [ecran.id]
    assert ids(engine_for.search(SearchRequest(query="FÜR"))) == [strasse.id]


def test_text_clause_is_native_only_where_case_folding_agrees():
    request = SearchRequest(query="écran")
    assert compile_request(request, "sqlite")[0].clause is None
    assert compile_request(request, "postgresql")[0].clause is not None
