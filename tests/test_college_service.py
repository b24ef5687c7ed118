import pytest

from college_service import (
    create_college,
    list_merge_logs,
    list_unmapped_groups,
    merge_colleges,
    resolve_or_create_college,
)
from errors import NotFoundError, ValidationError
from models import College, CollegeMergeLog, User


def test_create_college_rejects_case_and_whitespace_variants(db):
    college = create_college(db, name="MIT", added_by="root@techutsav.in")
    assert college.approved is False
    assert college.city == ""

    with pytest.raises(ValidationError) as exc:
        create_college(db, name=" mit ")
    assert exc.value.status_code == 400
    assert db.query(College).count() == 1


def test_create_college_requires_name(db):
    with pytest.raises(ValidationError):
        create_college(db, name="   ")


def test_unmapped_groups_merge_case_variants(db, make_user):
    make_user(college="anna univ")
    make_user(college="Anna Univ")
    make_user(college="PSG Tech ")
    make_user(college="")
    mapped = create_college(db, name="CEG")
    make_user(college="CEG", college_id=mapped.id)

    groups = list_unmapped_groups(db)

    assert [g["normalized_key"] for g in groups] == ["anna univ", "psg tech"]
    anna = groups[0]
    assert anna["total_users"] == 2
    assert len(anna["user_ids"]) == 2
    assert sorted(v["name"] for v in anna["variants"]) == ["Anna Univ", "anna univ"]
    assert groups[1]["display_name"] == "PSG Tech"


def test_unmapped_display_name_is_most_common_variant(db, make_user):
    make_user(college="Anna Univ")
    make_user(college="ANNA UNIV")
    make_user(college="ANNA UNIV")

    group = list_unmapped_groups(db)[0]
    assert group["display_name"] == "ANNA UNIV"
    assert group["variants"][0] == {"name": "ANNA UNIV", "count": 2}


def test_merge_by_keys_restores_canonical_name(db, make_user, make_admin):
    admin = make_admin()
    target = create_college(db, name="Anna University")
    first = make_user(college="anna univ")
    second = make_user(college=" Anna Univ")
    other = make_user(college="PSG Tech")

    result = merge_colleges(db, college_id=target.id, normalized_keys=["Anna Univ", "anna univ", ""], performed_by=admin)

    assert result["modified_count"] == 2
    assert result["normalized_keys"] == ["anna univ"]
    assert result["warnings"] == []
    for user in (first, second):
        db.refresh(user)
        assert user.college_id == target.id
        assert user.college == target.name
    db.refresh(other)
    assert other.college_id is None

    log = db.query(CollegeMergeLog).one()
    assert log.modified_count == 2
    assert log.normalized_keys == ["anna univ"]
    assert log.performed_by_email == admin.email


def test_merge_is_idempotent_per_group(db, make_user, make_admin):
    admin = make_admin()
    target = create_college(db, name="Anna University")
    make_user(college="anna univ")

    first = merge_colleges(db, college_id=target.id, normalized_keys=["anna univ"], performed_by=admin)
    second = merge_colleges(db, college_id=target.id, normalized_keys=["anna univ"], performed_by=admin)

    assert first["modified_count"] == 1
    assert second["modified_count"] == 0
    assert [log.modified_count for log in list_merge_logs(db)] == [0, 1]


def test_merge_legacy_user_ids_path(db, make_user, make_admin):
    admin = make_admin()
    target = create_college(db, name="Anna University")
    user = make_user(college="AU")

    result = merge_colleges(db, college_id=target.id, user_ids=[user.id, user.id], performed_by=admin)

    assert result["modified_count"] == 1
    assert result["user_ids"] == [user.id]
    db.refresh(user)
    assert user.college == "Anna University"


def test_merge_errors(db, make_admin):
    admin = make_admin()
    target = create_college(db, name="Anna University")

    with pytest.raises(NotFoundError):
        merge_colleges(db, college_id=999, normalized_keys=["x"], performed_by=admin)
    with pytest.raises(ValidationError):
        merge_colleges(db, college_id=target.id, normalized_keys=["  "], performed_by=admin)
    with pytest.raises(ValidationError):
        merge_colleges(db, college_id=target.id, performed_by=admin)


def test_merge_log_failure_is_a_warning(db, make_user, make_admin, monkeypatch):
    import college_service

    admin = make_admin()
    target = create_college(db, name="Anna University")
    user = make_user(college="anna univ")

    class BrokenLog:
        def __init__(self, **kwargs):
            raise RuntimeError("log store down")

    monkeypatch.setattr(college_service, "CollegeMergeLog", BrokenLog)
    result = merge_colleges(db, college_id=target.id, normalized_keys=["anna univ"], performed_by=admin)

    assert result["modified_count"] == 1
    assert result["warnings"]
    db.refresh(user)
    assert user.college_id == target.id


def test_resolve_or_create_college_for_onspot(db):
    existing = create_college(db, name="Anna University")

    assert resolve_or_create_college(db, new_college={"name": " anna university "}).id == existing.id

    created = resolve_or_create_college(db, new_college={"name": "PSG Tech", "city": " Coimbatore "}, added_by="desk@x")
    db.commit()
    assert created.approved is True
    assert created.city == "Coimbatore"

    assert resolve_or_create_college(db, college_id=existing.id).id == existing.id
    assert resolve_or_create_college(db) is None
    with pytest.raises(NotFoundError):
        resolve_or_create_college(db, college_id=12345)


def test_merged_users_satisfy_canonical_invariant(db, make_user, make_admin):
    admin = make_admin()
    a = create_college(db, name="Anna University")
    b = create_college(db, name="PSG College of Technology")
    for raw in ["anna univ", "Anna Univ", "psg", "PSG "]:
        make_user(college=raw)

    merge_colleges(db, college_id=a.id, normalized_keys=["anna univ"], performed_by=admin)
    merge_colleges(db, college_id=b.id, normalized_keys=["psg"], performed_by=admin)

    names = {c.id: c.name for c in db.query(College).all()}
    for user in db.query(User).filter(User.college_id.isnot(None)).all():
        assert user.college == names[user.college_id]


def test_create_college_rejects_non_ascii_case_variant(db):
    create_college(db, name="École Centrale")

    with pytest.raises(ValidationError):
        create_college(db, name="ÉCOLE CENTRALE")
    assert db.query(College).count() == 1


def test_unmapped_groups_fold_non_ascii_case(db, make_user):
    make_user(college="Université Paris")
    make_user(college="UNIVERSITÉ PARIS ")

    groups = list_unmapped_groups(db)

    assert len(groups) == 1
    assert groups[0]["normalized_key"] == "université paris"
    assert groups[0]["total_users"] == 2


def test_merge_listed_non_ascii_group_moves_exactly_its_users(db, make_user, make_admin):
    admin = make_admin()
    target = create_college(db, name="Université Paris-Saclay")
    first = make_user(college="Université Paris")
    second = make_user(college="UNIVERSITÉ PARIS")
    bystander = make_user(college="Universität Wien")

    group = next(g for g in list_unmapped_groups(db) if first.id in g["user_ids"])
    assert sorted(group["user_ids"]) == sorted([first.id, second.id])

    result = merge_colleges(db, college_id=target.id, normalized_keys=[group["normalized_key"]], performed_by=admin)

    assert result["modified_count"] == 2
    for user in (first, second):
        db.refresh(user)
        assert user.college_id == target.id
    db.refresh(bystander)
    assert bystander.college_id is None
    assert [g["normalized_key"] for g in list_unmapped_groups(db)] == ["universität wien"]


def test_merge_accepts_keys_in_any_case(db, make_user, make_admin):
    admin = make_admin()
    target = create_college(db, name="École Centrale")
    user = make_user(college="école centrale")

    result = merge_colleges(db, college_id=target.id, normalized_keys=["ÉCOLE CENTRALE"], performed_by=admin)

    assert result["modified_count"] == 1
    db.refresh(user)
    assert user.college == "École Centrale"


def test_existing_college_id_wins_over_new_college(db):
    existing = create_college(db, name="Anna University")

    resolved = resolve_or_create_college(db, college_id=existing.id, new_college={"name": "Some Other College"})

    assert resolved.id == existing.id
    assert db.query(College).count() == 1
