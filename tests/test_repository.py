"""Generic repository contract, exercised on a non-account entity."""
import pytest
from sqlalchemy import String, event, select
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.adminkit.db import make_engine, make_sessionmaker
from app.adminkit.errors import DuplicateRecord, MissingActor, NotFound
from app.adminkit.listing import ListParams
from app.adminkit.models import AuditMixin
from app.adminkit.repository import BaseRepository


class WidgetBase(DeclarativeBase):
    pass


class Widget(AuditMixin, WidgetBase):
    __tablename__ = "widgets"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="basic")


class Tag(AuditMixin, WidgetBase):
    __tablename__ = "tags"

    label: Mapped[str] = mapped_column(String(50), nullable=False)


class WidgetRepository(BaseRepository[Widget]):
    model = Widget
    allowed_sort_columns = frozenset({"id", "name", "created_at"})


@pytest.fixture()
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path/'repo.db'}")
    WidgetBase.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def s(engine):
    session = make_sessionmaker(engine)()
    yield session
    session.close()


@pytest.fixture()
def repo(s):
    return WidgetRepository(s)


def _seed(repo, s, n, actor_id=1):
    failures = repo.bulk_create([Widget(name=f"w{i:03d}") for i in range(n)], actor_id)
    s.commit()
    assert failures == []


def _ids(items):
    return [w.id for w in items]


# ---------- list ----------
def test_pages_cover_every_row_once(repo, s):
    _seed(repo, s, 45)
    seen = []
    for page in (1, 2, 3):
        items, total = repo.list(ListParams(page=page, per_page=20))
        assert total == 45
        seen.extend(_ids(items))
    assert len(seen) == 45
    assert len(set(seen)) == 45

    items, _ = repo.list(ListParams(page=4, per_page=20))
    assert items == []


def test_unknown_sort_column_behaves_like_id(repo, s):
    _seed(repo, s, 10)
    for order in ("asc", "desc"):
        bogus, _ = repo.list(ListParams(sort_by="password_hash", order_by=order))
        default, _ = repo.list(ListParams(sort_by="id", order_by=order))
        assert _ids(bogus) == _ids(default)


def test_sort_by_allowed_column(repo, s):
    for name in ("banana", "apple", "cherry"):
        repo.create(Widget(name=name), actor_id=1)
    s.commit()
    items, _ = repo.list(ListParams(sort_by="name", order_by="asc"))
    assert [w.name for w in items] == ["apple", "banana", "cherry"]


def test_column_outside_allow_list_is_ignored_even_if_it_exists(repo, s):
    repo.create(Widget(name="b", status="z"), actor_id=1)
    repo.create(Widget(name="a", status="a"), actor_id=1)
    s.commit()
    by_status, _ = repo.list(ListParams(sort_by="status", order_by="desc"))
    by_id, _ = repo.list(ListParams(sort_by="id", order_by="desc"))
    assert _ids(by_status) == _ids(by_id)


def test_name_filter_is_accent_insensitive(repo, s):
    for name in ("Çiçek Şubesi", "Istanbul Depo", "Ankara Merkez"):
        repo.create(Widget(name=name), actor_id=1)
    s.commit()

    items, total = repo.list(ListParams(name="cicek"))
    assert total == 1
    assert items[0].name == "Çiçek Şubesi"

    items, total = repo.list(ListParams(name="ŞUBE"))
    assert total == 1

    items, total = repo.list(ListParams(name="%"))
    assert total == 0


def test_status_and_type_filters(repo, s):
    repo.create(Widget(name="a", status="live", type="big"), actor_id=1)
    repo.create(Widget(name="b", status="live", type="small"), actor_id=1)
    repo.create(Widget(name="c", status="draft", type="big"), actor_id=1)
    s.commit()
    _, total = repo.list(ListParams(status="live"))
    assert total == 2
    items, total = repo.list(ListParams(status="live", type="big"))
    assert total == 1
    assert items[0].name == "a"


def test_zero_count_skips_fetch(repo, engine):
    statements = []

    @event.listens_for(engine, "before_cursor_execute")
    def _capture(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("SELECT"):
            statements.append(statement)

    items, total = repo.list(ListParams(name="nothing-here"))
    assert (items, total) == ([], 0)
    assert len(statements) == 1
    assert "count" in statements[0].lower()


# ---------- get / count ----------
def test_get_by_id(repo, s):
    w = repo.create(Widget(name="x"), actor_id=1)
    s.commit()
    assert repo.get_by_id(w.id).name == "x"
    with pytest.raises(NotFound):
        repo.get_by_id(9999)


def test_count_and_count_by(repo, s):
    repo.create(Widget(name="a", status="live"), actor_id=1)
    repo.create(Widget(name="b", status="live"), actor_id=1)
    c = repo.create(Widget(name="c", status="draft"), actor_id=1)
    s.commit()
    assert repo.count() == 3
    assert repo.count_by({"status": "live"}) == 2
    assert repo.count_by({"status": ["live", "draft"]}) == 3

    repo.delete(c.id, actor_id=1)
    s.commit()
    assert repo.count() == 2
    assert repo.count_by({"status": "draft"}) == 0


# ---------- create ----------
def test_create_stamps_actor_from_argument_not_payload(repo, s):
    w = Widget(name="x", created_by=99, updated_by=99)
    repo.create(w, actor_id=5)
    s.commit()
    assert (w.created_by, w.updated_by) == (5, 5)
    assert w.deleted_at is None
    assert w.created_at is not None


def test_create_without_actor_leaves_actor_empty(repo, s):
    w = repo.create(Widget(name="system"))
    s.commit()
    assert w.created_by is None


def test_create_duplicate_raises_duplicate_record(repo, s):
    repo.create(Widget(name="dup"), actor_id=1)
    s.commit()
    with pytest.raises(DuplicateRecord):
        repo.create(Widget(name="dup"), actor_id=1)
    s.rollback()


def test_bulk_create_stops_on_first_error(repo, s):
    with pytest.raises(DuplicateRecord):
        repo.bulk_create([Widget(name="a"), Widget(name="a"), Widget(name="b")], actor_id=1)
    s.commit()
    assert repo.count() == 1


def test_bulk_create_can_collect_failures(repo, s):
    failures = repo.bulk_create(
        [Widget(name="a"), Widget(name="a"), Widget(name="b")],
        actor_id=1,
        stop_on_error=False,
    )
    s.commit()
    assert [idx for idx, _ in failures] == [1]
    assert isinstance(failures[0][1], DuplicateRecord)
    assert repo.count() == 2


# ---------- update ----------
def test_update_is_sparse_and_stamps_updater(repo, s):
    w = repo.create(Widget(name="old", status="draft"), actor_id=1)
    s.commit()
    repo.update(w.id, {"name": "new"}, actor_id=7)
    s.commit()
    s.expire_all()
    fresh = repo.get_by_id(w.id)
    assert fresh.name == "new"
    assert fresh.status == "draft"
    assert fresh.updated_by == 7
    assert fresh.created_by == 1


def test_update_without_actor_keeps_previous_updater(repo, s):
    w = repo.create(Widget(name="x"), actor_id=3)
    s.commit()
    repo.update(w.id, {"status": "live"}, actor_id=0)
    s.commit()
    s.expire_all()
    assert repo.get_by_id(w.id).updated_by == 3


def test_update_rejects_audit_and_unknown_columns(repo, s):
    w = repo.create(Widget(name="x"), actor_id=1)
    s.commit()
    with pytest.raises(ValueError):
        repo.update(w.id, {"created_by": 42}, actor_id=1)
    with pytest.raises(ValueError):
        repo.update(w.id, {"colour": "red"}, actor_id=1)


def test_update_missing_row(repo):
    with pytest.raises(NotFound):
        repo.update(12345, {"name": "x"}, actor_id=1)


def test_bulk_update(repo, s):
    for name in ("a", "b", "c"):
        repo.create(Widget(name=name, status="draft"), actor_id=1)
    s.commit()
    assert repo.bulk_update({"name": ["a", "b"]}, {"status": "live"}, actor_id=2) == 2
    s.commit()
    assert repo.count_by({"status": "live"}) == 2
    with pytest.raises(ValueError):
        repo.bulk_update({}, {"status": "live"}, actor_id=2)


# ---------- delete ----------
def test_soft_delete_hides_row_but_keeps_audit_trail(repo, s):
    w = repo.create(Widget(name="gone"), actor_id=1)
    s.commit()
    repo.delete(w.id, actor_id=9)
    s.commit()

    with pytest.raises(NotFound):
        repo.get_by_id(w.id)
    items, total = repo.list(ListParams())
    assert (items, total) == ([], 0)

    row = s.execute(select(Widget.deleted_at, Widget.deleted_by, Widget.updated_by).where(Widget.id == w.id)).one()
    assert row.deleted_at is not None
    assert row.deleted_by == 9
    assert row.updated_by == 9


def test_delete_requires_actor(repo, s):
    w = repo.create(Widget(name="x"), actor_id=1)
    s.commit()
    with pytest.raises(MissingActor):
        repo.delete(w.id, actor_id=None)
    with pytest.raises(MissingActor):
        repo.delete(w.id, actor_id=0)
    assert repo.get_by_id(w.id).deleted_at is None


def test_delete_twice_is_not_found(repo, s):
    w = repo.create(Widget(name="x"), actor_id=1)
    s.commit()
    repo.delete(w.id, actor_id=1)
    s.commit()
    with pytest.raises(NotFound):
        repo.delete(w.id, actor_id=1)


def test_bulk_delete_variants(repo, s):
    ids = [repo.create(Widget(name=n, status="draft" if n < "c" else "live"), actor_id=1).id for n in "abcde"]
    s.commit()

    assert repo.bulk_delete({"status": "draft"}, actor_id=4) == 2
    assert repo.bulk_delete_ids(ids[2:4], actor_id=4) == 2
    s.commit()
    assert repo.count() == 1

    with pytest.raises(MissingActor):
        repo.bulk_delete({"status": "live"}, actor_id=None)
    with pytest.raises(MissingActor):
        repo.bulk_delete_ids(ids, actor_id=0)
    with pytest.raises(ValueError):
        repo.bulk_delete({}, actor_id=4)
    assert repo.bulk_delete_ids([], actor_id=4) == 0


# ---------- configuration ----------
def test_set_allowed_sort_columns_validates_names(repo):
    with pytest.raises(ValueError):
        repo.set_allowed_sort_columns({"no_such_column"})
    repo.set_allowed_sort_columns({"status"})
    assert "id" in repo._allowed_sort


def test_model_is_required(s):
    class Bare(BaseRepository):
        pass

    with pytest.raises(TypeError):
        Bare(s)
    assert BaseRepository(s, Widget).model is Widget


def test_filters_without_matching_column_are_skipped(s):
    repo = BaseRepository(s, Tag)
    repo.create(Tag(label="x"), actor_id=1)
    s.commit()

    items, total = repo.list(ListParams(name="anything", status="live", type="big"))
    assert total == 1
    assert items[0].label == "x"
