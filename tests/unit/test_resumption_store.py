from coursepay.resumption.store import (
    PENDING_ENROLLMENT_KEY,
    InMemoryResumptionStore,
    PendingEnrollmentRecord,
    SessionResumptionStore,
)

RECORD = PendingEnrollmentRecord(enrollment_id="E9", course_id="C1", user_id="u1", payment_method="eversend")


def test_session_store_writes_single_json_value():
    session = {}
    SessionResumptionStore(session).save(RECORD)
    assert list(session) == [PENDING_ENROLLMENT_KEY]
    assert session[PENDING_ENROLLMENT_KEY] == '{"enrollment_id":"E9","course_id":"C1","user_id":"u1","payment_method":"eversend"}'


def test_consume_reads_once():
    session = {}
    store = SessionResumptionStore(session)
    store.save(RECORD)

    assert store.consume() == RECORD
    assert store.consume() is None
    assert PENDING_ENROLLMENT_KEY not in session


def test_unreadable_record_is_never_partial():
    session = {PENDING_ENROLLMENT_KEY: '{"enrollment_id":"E9"}'}
    assert SessionResumptionStore(session).load() is None
    session[PENDING_ENROLLMENT_KEY] = "not json"
    assert SessionResumptionStore(session).load() is None


def test_in_memory_store():
    store = InMemoryResumptionStore()
    assert store.load() is None
    store.save(RECORD)
    assert store.load() == RECORD
    store.clear()
    assert store.load() is None
