"""Tests for the bounded dependency graph walk."""

from devforge.catalog.dependency_graph import build_dependency_graph
from devforge.db.models import Team


def _expanded_names(node: dict | None) -> list[str]:
    """Names of every service expanded anywhere in the graph."""
    if node is None:
        return []
    names = [node["service"]["name"]]
    for edge in node["dependencies"] + node["dependents"]:
        names.extend(_expanded_names(edge["children"]))
    return names


def _team(db_session) -> Team:
    team = Team(name="core", display_name="Core")
    db_session.add(team)
    return team


def test_cycle_terminates_and_expands_each_service_once(db_session, make_service, make_dependency):
    team = _team(db_session)
    a = make_service(team, "a")
    b = make_service(team, "b")
    c = make_service(team, "c")
    make_dependency(a, b)
    make_dependency(b, c)
    make_dependency(c, a)
    db_session.flush()

    graph = build_dependency_graph(db_session, "a", depth=10)

    assert sorted(_expanded_names(graph)) == ["a", "b", "c"]
    c_node = graph["dependencies"][0]["children"]["dependencies"][0]["children"]
    assert c_node["service"]["name"] == "c"
    # c -> a points back at the root, which is not expanded again
    assert c_node["dependencies"][0]["service"]["name"] == "a"
    assert c_node["dependencies"][0]["children"] is None


def test_depth_two_on_cycle_stops_at_depth(db_session, make_service, make_dependency):
    team = _team(db_session)
    a = make_service(team, "a")
    b = make_service(team, "b")
    c = make_service(team, "c")
    make_dependency(a, b)
    make_dependency(b, c)
    make_dependency(c, a)
    db_session.flush()

    graph = build_dependency_graph(db_session, "a", depth=2)

    b_node = graph["dependencies"][0]["children"]
    assert b_node["service"]["name"] == "b"
    assert b_node["dependencies"][0]["service"]["name"] == "c"
    assert b_node["dependencies"][0]["children"] is None


def test_visited_set_is_shared_across_branches(db_session, make_service, make_dependency):
    team = _team(db_session)
    top = make_service(team, "top")
    left = make_service(team, "left")
    right = make_service(team, "right")
    bottom = make_service(team, "bottom")
    make_dependency(top, left)
    make_dependency(top, right)
    make_dependency(left, bottom)
    make_dependency(right, bottom)
    db_session.flush()

    graph = build_dependency_graph(db_session, "top", depth=5)

    names = _expanded_names(graph)
    assert names.count("bottom") == 1
    assert sorted(names) == ["bottom", "left", "right", "top"]


def test_depth_zero_returns_none(platform, db_session):
    assert build_dependency_graph(db_session, "user-service", depth=0) is None


def test_depth_one_lists_neighbours_without_children(platform, db_session):
    graph = build_dependency_graph(db_session, "user-service", depth=1)

    assert graph["service"] == {"name": "user-service", "type": "API", "status": "ACTIVE"}
    assert sorted(edge["service"]["name"] for edge in graph["dependencies"]) == ["auth-service", "user-database"]
    assert [edge["service"]["name"] for edge in graph["dependents"]] == ["payment-service"]
    assert graph["dependents"][0]["type"] == "ASYNC"
    assert all(edge["children"] is None for edge in graph["dependencies"] + graph["dependents"])


def test_lookup_is_case_insensitive(platform, db_session):
    graph = build_dependency_graph(db_session, "User-Service", depth=1)

    assert graph["service"]["name"] == "user-service"


def test_unknown_service_returns_none(platform, db_session):
    assert build_dependency_graph(db_session, "does-not-exist", depth=3) is None
