import pytest

from support_chat.client.db.message_store import MessageStore
from support_chat.db.session import make_engine, make_session_factory
from support_chat.errors import AlreadyClosed, RoomNotFound, StoreUnavailable


def test_find_active_room_returns_none_for_new_customer(store):
    assert store.find_active_room_for_customer(1) is None


def test_create_room_starts_active_and_unassigned(store):
    room = store.create_room(1, "kim", "kim@example.com")

    assert room.is_active
    assert room.staff_id is None
    assert room.customer_name == "kim"
    assert room.created_at is not None
    assert store.find_active_room_for_customer(1).id == room.id


def test_create_room_twice_keeps_single_active_room(store):
    first = store.create_room(1)
    second = store.create_room(1)

    assert second.id == first.id
    assert [r.id for r in store.list_active_rooms()] == [first.id]


def test_closed_room_allows_a_fresh_active_room(store):
    first = store.create_room(1)
    store.close_room(first.id)

    second = store.create_room(1)

    assert second.id != first.id
    assert store.find_active_room_for_customer(1).id == second.id


def test_assign_staff_first_assignment_wins(store):
    room = store.create_room(1)

    assigned = store.assign_staff_if_unset(room.id, 10, "alice")
    again = store.assign_staff_if_unset(room.id, 11, "bob")

    assert assigned.staff_id == 10
    assert again.staff_id == 10
    assert again.staff_name == "alice"


def test_assign_staff_unknown_room(store):
    with pytest.raises(RoomNotFound):
        store.assign_staff_if_unset(404, 10)


def test_assign_staff_closed_room(store):
    room = store.create_room(1)
    store.close_room(room.id)

    with pytest.raises(AlreadyClosed):
        store.assign_staff_if_unset(room.id, 10)


def test_close_room_twice_fails_and_keeps_updated_at(store):
    room = store.create_room(1)
    closed = store.close_room(room.id)

    with pytest.raises(AlreadyClosed):
        store.close_room(room.id)

    after = store.get_room(room.id)
    assert after.status == "closed"
    assert after.updated_at == closed.updated_at


def test_close_unknown_room(store):
    with pytest.raises(RoomNotFound):
        store.close_room(404)


def test_insert_message_rejects_closed_and_missing_rooms(store):
    room = store.create_room(1)
    store.close_room(room.id)

    with pytest.raises(AlreadyClosed):
        store.insert_message(room.id, 1, "customer", "hello")
    with pytest.raises(RoomNotFound):
        store.insert_message(404, 1, "customer", "hello")
    assert store.count_messages(room.id) == 0


def test_insert_message_defaults(store):
    room = store.create_room(1)

    message = store.insert_message(room.id, 1, "customer", "hello", sender_name="kim")

    assert message.id is not None
    assert message.is_read is False
    assert message.kind == "text"
    assert message.sender_name == "kim"
    assert message.created_at is not None


def test_list_messages_ascending_with_newest_window_first(store):
    room = store.create_room(1)
    for i in range(5):
        store.insert_message(room.id, 1, "customer", f"m{i}")

    assert [m.body for m in store.list_messages(room.id, 1, None)] == ["m0", "m1", "m2", "m3", "m4"]
    assert [m.body for m in store.list_messages(room.id, 1, 2)] == ["m3", "m4"]
    assert [m.body for m in store.list_messages(room.id, 2, 2)] == ["m1", "m2"]
    assert [m.body for m in store.list_messages(room.id, 3, 2)] == ["m0"]
    assert store.count_messages(room.id) == 5


def test_mark_read_only_flips_given_sender_kind(store):
    room = store.create_room(1)
    store.insert_message(room.id, 1, "customer", "question")
    store.insert_message(room.id, 10, "staff", "answer")

    assert store.mark_read(room.id, "customer") == 1
    assert store.mark_read(room.id, "customer") == 0

    by_kind = {m.sender_kind: m.is_read for m in store.list_messages(room.id, 1, None)}
    assert by_kind == {"customer": True, "staff": False}


def test_list_active_rooms_projection(store):
    quiet = store.create_room(1, "kim")
    busy = store.create_room(2, "lee")
    store.assign_staff_if_unset(busy.id, 10, "alice")
    store.insert_message(busy.id, 2, "customer", "first")
    store.insert_message(busy.id, 2, "customer", "second")
    store.insert_message(busy.id, 10, "staff", "reply")
    closed = store.create_room(3)
    store.close_room(closed.id)

    rooms = {r.id: r for r in store.list_active_rooms()}

    assert set(rooms) == {quiet.id, busy.id}
    assert rooms[busy.id].unread_count == 2
    assert rooms[busy.id].last_message == "reply"
    assert rooms[busy.id].last_sender_kind == "staff"
    assert rooms[busy.id].staff_name == "alice"
    assert rooms[quiet.id].unread_count == 0
    assert rooms[quiet.id].last_message is None


def test_stats(store):
    room = store.create_room(1)
    store.insert_message(room.id, 1, "customer", "hi")
    store.insert_message(room.id, 10, "staff", "hello")
    other = store.create_room(2)
    store.insert_message(other.id, 2, "customer", "hey")
    store.close_room(other.id)

    stats = store.stats()

    assert stats.total_rooms == 2
    assert stats.active_rooms == 1
    assert stats.total_messages == 3
    assert stats.unread_messages == 2
    assert stats.rooms_with_unread == 2
    assert [m.body for m in stats.recent_activity] == ["hello", "hi"]


def test_database_errors_surface_as_store_unavailable(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    broken = MessageStore(make_session_factory(engine))

    with pytest.raises(StoreUnavailable):
        broken.find_active_room_for_customer(1)
    engine.dispose()
