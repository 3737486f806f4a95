"""Tests for role extraction and record aggregation."""

from contentful_export.exporter import build_user_records, merge_memberships
from contentful_export.models import (
    PagedResult,
    RoleIndicators,
    Team,
    TeamMemberships,
    UserInfo,
    UserRecord,
    extract_role_names,
    get_membership_user_id,
)

from conftest import membership


def test_role_names_admin_then_roles_then_legacy():
    item = membership("U1", admin=True, roles=[{"name": "Editor"}, {"name": "Author"}], role="Owner")
    assert extract_role_names(item) == ["Admin", "Editor", "Author", "Owner"]


def test_role_names_deduplicate_across_sources():
    item = membership("U1", admin=True, roles=[{"name": "Admin"}, {"name": "Editor"}, {"name": "Editor"}],
                      role="Editor")
    assert extract_role_names(item) == ["Admin", "Editor"]


def test_role_names_skip_roles_without_name():
    item = membership("U1", roles=[{"sys": {"id": "r1"}}, {"name": ""}, {"name": "Translator"}])
    assert extract_role_names(item) == ["Translator"]


def test_role_names_empty_when_no_indicators():
    assert extract_role_names(membership("U1")) == []
    assert extract_role_names(membership("U1", admin=False, roles=[])) == []


def test_role_names_idempotent():
    item = membership("U1", admin=True, roles=[{"name": "Editor"}], role="member")
    first = extract_role_names(item)
    assert extract_role_names(item) == first
    assert extract_role_names(item) == ["Admin", "Editor", "member"]


def test_role_indicators_from_membership():
    indicators = RoleIndicators.from_membership({"admin": True, "roles": [{"name": "Editor"}], "role": "owner"})
    assert indicators == RoleIndicators(admin=True, role_names=["Editor"], legacy_role="owner")


def test_membership_user_id_resolution():
    assert get_membership_user_id(membership("U1")) == "U1"
    assert get_membership_user_id(membership()) is None
    assert get_membership_user_id({}) is None
    assert get_membership_user_id({"sys": {"user": {}}}) is None


def test_user_info_display_name():
    assert UserInfo("U1", first_name="Ada", last_name="Lovelace").display_name == "Ada Lovelace"
    assert UserInfo("U1", first_name="Ada").display_name == "Ada"
    assert UserInfo("U1").display_name == ""


def test_user_info_from_include_requires_id():
    assert UserInfo.from_include({"email": "x@example.com"}) is None
    info = UserInfo.from_include({"sys": {"id": "U1"}, "email": None, "firstName": "Ada"})
    assert info == UserInfo("U1", email="", first_name="Ada", last_name="")


def test_team_from_item():
    assert Team.from_item({"name": "Design"}) is None
    assert Team.from_item({"sys": {"id": "T1"}, "name": "Design"}) == Team("T1", "Design")
    assert Team.from_item({"sys": {"id": "T2"}}) == Team("T2", "T2")


def test_items_without_user_id_are_skipped():
    result = PagedResult(items=[membership(None, admin=True), {"admin": True}])
    user_map = {}
    merge_memberships(user_map, result, "org_roles")
    assert user_map == {}


def test_merging_same_roles_twice_is_a_no_op():
    result = PagedResult(
        items=[membership("U1", roles=[{"name": "Editor"}]), membership("U1", roles=[{"name": "Editor"}])],
    )
    user_map = {}
    merge_memberships(user_map, result, "space_roles")
    merge_memberships(user_map, result, "space_roles")
    assert user_map["U1"].space_roles == ["Editor"]


def test_build_user_records_preserves_encounter_order():
    org = PagedResult(items=[membership("U2", role="member"), membership("U1", admin=True)])
    space = PagedResult(items=[membership("U3", roles=[{"name": "Editor"}]), membership("U1", role="Author")])
    teams = TeamMemberships(user_teams={"U4": ["Design"], "U1": ["Design", "Ops", "Design"]})

    records = build_user_records(org, space, teams)

    assert [r.user_id for r in records] == ["U2", "U1", "U3", "U4"]
    u1 = records[1]
    assert u1.org_roles == ["Admin"]
    assert u1.space_roles == ["Author"]
    assert u1.teams == ["Design", "Ops"]


def test_first_non_empty_identity_wins():
    org = PagedResult(
        items=[membership("U1", admin=True)],
        users={"U1": UserInfo("U1", email="first@example.com")},
    )
    space = PagedResult(
        items=[membership("U1", role="Editor")],
        users={"U1": UserInfo("U1", email="second@example.com", first_name="Ada", last_name="Lovelace")},
    )
    teams = TeamMemberships(
        user_teams={"U1": ["Design"]},
        users={"U1": UserInfo("U1", email="third@example.com", first_name="Grace")},
    )

    [record] = build_user_records(org, space, teams)

    assert record.email == "first@example.com"
    assert record.name == "Ada Lovelace"


def test_user_record_to_row_joins_collections():
    record = UserRecord("U1", email="u1@example.com", name="Ada",
                        org_roles=["Admin", "Owner"], space_roles=[], teams=["Design"])
    assert record.to_row() == {
        "userId": "U1",
        "email": "u1@example.com",
        "name": "Ada",
        "orgRoles": "Admin; Owner",
        "spaceRoles": "",
        "teams": "Design",
    }
