from syllabus_app.core.event_bus import EventBus


def test_emit_reaches_named_and_wildcard_handlers_in_order():
    bus = EventBus()
    calls = []
    bus.subscribe('syllabus_added', lambda data: calls.append(('named', data['id'])))
    bus.subscribe('*', lambda data: calls.append(('wildcard', data['event_name'])))

    bus.emit('syllabus_added', {'id': 7})

    assert calls == [('named', 7), ('wildcard', 'syllabus_added')]


def test_emit_without_handlers_is_silent():
    bus = EventBus()
    bus.emit('syllabus_deleted', {'course_id': 1})


def test_handlers_get_a_copy_of_the_payload():
    bus = EventBus()
    received = []
    bus.subscribe('syllabus_deleted', received.append)
    payload = {'course_id': 3, 'access_type': 1}

    bus.emit('syllabus_deleted', payload)

    assert received == [{'event_name': 'syllabus_deleted', 'course_id': 3, 'access_type': 1}]
    assert 'event_name' not in payload
