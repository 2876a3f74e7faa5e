from pytest import raises

from orderdrop import crud, errors, services


def test_create_then_get_is_pending(db_session, seller):
    services.create_order(db_session, seller, "A100")
    order = services.get_order(db_session, "A100")
    assert order.has_uploaded is False
    assert order.video_url is None and order.image_url is None and order.song_request is None


def test_duplicate_order_number_conflicts(db_session, seller):
    first = services.create_order(db_session, seller, "A100")
    with raises(errors.Conflict):
        services.create_order(db_session, seller, "A100")
    assert len(crud.list_orders(db_session)) == 1
    assert services.get_order(db_session, "A100").id == first.id


def test_create_requires_seller(db_session):
    buyer = services.register_user(db_session, "buyer", "pw")
    with raises(errors.Forbidden):
        services.create_order(db_session, buyer, "A1")
    with raises(errors.Forbidden):
        services.create_order(db_session, None, "A1")
    assert crud.get_order(db_session, "A1") is None


def test_duplicate_key_from_store(db_session):
    crud.create_order(db_session, "X1")
    with raises(crud.DuplicateKey):
        crud.create_order(db_session, "X1")


def test_get_unknown_order(db_session):
    with raises(errors.NotFound):
        services.get_order(db_session, "nope")


def test_mark_uploaded_only_once(db_session):
    crud.create_order(db_session, "B1")
    order = crud.mark_uploaded(db_session, "B1", video_url="v1", image_url="i1", song_request="s1")
    assert order.has_uploaded is True
    assert (order.video_url, order.image_url, order.song_request) == ("v1", "i1", "s1")

    assert crud.mark_uploaded(db_session, "B1", video_url="v2", image_url="i2", song_request="s2") is None
    order = crud.get_order(db_session, "B1")
    assert (order.video_url, order.image_url, order.song_request) == ("v1", "i1", "s1")


def test_mark_uploaded_unknown_order(db_session):
    assert crud.mark_uploaded(db_session, "missing", video_url="v", image_url="i", song_request="s") is None
    assert crud.list_orders(db_session) == []


def test_delete_pending_order_conflicts(db_session, seller):
    services.create_order(db_session, seller, "C1")
    with raises(errors.Conflict):
        services.delete_order(db_session, seller, "C1")
    assert crud.get_order(db_session, "C1") is not None


def test_delete_uploaded_order(db_session, seller):
    services.create_order(db_session, seller, "C2")
    crud.mark_uploaded(db_session, "C2", video_url="v", image_url="i", song_request="s")
    services.delete_order(db_session, seller, "C2")
    with raises(errors.NotFound):
        services.get_order(db_session, "C2")
    with raises(errors.NotFound):
        services.delete_order(db_session, seller, "C2")


def test_update_order_is_all_or_nothing(db_session):
    crud.create_order(db_session, "D1")
    with raises(errors.ValidationError):
        services.update_order(db_session, "D1", video_url="https://x/v.mp4", image_url=None, song_request=None)
    order = crud.get_order(db_session, "D1")
    assert order.has_uploaded is False
    assert (order.video_url, order.image_url, order.song_request) == (None, None, None)

    order = services.update_order(db_session, "D1", video_url="v", image_url="i", song_request="note")
    assert order.has_uploaded is True
    assert (order.video_url, order.image_url, order.song_request) == ("v", "i", "note")

    with raises(errors.Conflict):
        services.update_order(db_session, "D1", video_url="v2", image_url="i2", song_request="again")
    assert crud.get_order(db_session, "D1").video_url == "v"
    with raises(errors.NotFound):
        services.update_order(db_session, "D2", video_url="v", image_url="i", song_request="note")


def test_list_orders_search_is_case_insensitive(db_session, seller):
    for number in ("ABC-1", "abc-2", "XYZ-3", "50%_off"):
        services.create_order(db_session, seller, number)
    found = [o.order_number for o in services.list_orders(db_session, seller, search="abc")]
    assert found == ["ABC-1", "abc-2"]
    assert [o.order_number for o in services.list_orders(db_session, seller, search="%")] == ["50%_off"]
    assert len(services.list_orders(db_session, seller, search="  ")) == 4


def test_authenticate(db_session):
    user = services.register_user(db_session, "pat", "secret")
    assert user.password != "secret"
    assert services.authenticate(db_session, "pat", "secret").id == user.id
    with raises(errors.AuthenticationFailed):
        services.authenticate(db_session, "pat", "wrong")
    with raises(errors.AuthenticationFailed):
        services.authenticate(db_session, "nobody", "secret")
    with raises(errors.Conflict):
        services.register_user(db_session, "pat", "other")
