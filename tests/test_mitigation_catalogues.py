"""
Tests for the individual mitigation catalogues and their pairwise helpers.
"""

from racewatch.core.mitigation import atomic, flow, immutable, lock, queue, transaction
from racewatch.core.mitigation.catalogue import match_catalogue
from racewatch.models.mitigation_models import Confidence
from racewatch.models.project_models import Atom
from racewatch.models.race_models import AccessPoint


def _atom(code, is_async=False, atom_id="x.js::f"):
    return Atom(id=atom_id, name=atom_id.split("::")[1], code=code, is_async=is_async)


def _access(atom_id, file, line=1):
    return AccessPoint(atom=atom_id, atom_name=atom_id.split("::")[1], file=file, line=line)


# ── Catalogue matching ──


def test_match_catalogue_empty_code():
    assert match_catalogue("", lock.CATALOGUE) is None
    assert match_catalogue(None, lock.CATALOGUE) is None


def test_detect_with_missing_atom():
    for checker in (lock, transaction, queue, immutable):
        assert checker.detect(None) is None
    assert atomic.detect(None) is None


# ── Lock ──


def test_lock_async_mutex():
    entry = lock.detect(_atom("await mutex.runExclusive(async () => { total = total + 1; });"))
    assert entry.label == "async-mutex"


def test_lock_row_lock():
    entry = lock.detect(_atom("await db.query('SELECT * FROM accounts WHERE id = $1 FOR UPDATE');"))
    assert entry.label == "row lock (SELECT ... FOR UPDATE)"


def test_lock_python_lock():
    entry = lock.detect(_atom("guard = threading.Lock()"))
    assert entry.label == "Python lock"


def test_lock_generic_call_is_medium():
    entry = lock.detect(_atom("resource.lock()"))
    assert entry.confidence == Confidence.MEDIUM


def test_lock_absent():
    assert lock.detect(_atom("counter = counter + 1;\nreturn counter;")) is None


def test_lock_mutex_acquire():
    entry = lock.detect(_atom("const release = await mutex.acquire();\ntotal = total + 1;\nrelease();", is_async=True))
    assert entry.label == "lock acquire/release"


def test_lock_prefixed_lock_variable():
    entry = lock.detect(_atom("await fileLock.acquire(path);\nawait write(path);", is_async=True))
    assert entry.label == "lock acquire/release"
    assert lock.detect(_atom("writeMutex.lock();")).label == "lock acquire/release"


def test_lock_ignores_comments():
    code = "// FIXME: no semaphore here, this races\ncounter = counter + 1;"
    assert lock.detect(_atom(code)) is None
    assert lock.detect(_atom("/* TODO wrap in mutex.acquire() */\nshared.n = 1;")) is None


def test_lock_keeps_string_literals():
    code = "// row lock below\nawait db.query('SELECT * FROM jobs WHERE id = $1 FOR UPDATE');"
    assert lock.detect(_atom(code)).label == "row lock (SELECT ... FOR UPDATE)"


# ── Atomic ──


def test_atomic_mongo_operator():
    entry = atomic.detect(_atom("await col.updateOne({ _id: id }, { $inc: { hits: 1 } });", is_async=True))
    assert entry.label == "MongoDB atomic update operator"


def test_atomic_redis_counter():
    entry = atomic.detect(_atom("await redis.incr('visits');", is_async=True))
    assert entry.label == "Redis atomic counter"


def test_atomic_single_statement_increment():
    assert atomic.detect(_atom("counter++")) is atomic.STRUCTURAL_ENTRY
    assert atomic.detect(_atom("total += n;")) is atomic.STRUCTURAL_ENTRY


def test_atomic_structural_rule_rejects_async():
    assert atomic.detect(_atom("counter++", is_async=True)) is None


def test_atomic_structural_rule_rejects_two_statements():
    assert atomic.detect(_atom("a++;\nb++;")) is None


def test_atomic_structural_rule_rejects_busy_one_liner():
    code = "function bump() { counter++; sharedCache.clear(); pending = load(); }"
    assert atomic.detect(_atom(code)) is None


def test_atomic_structural_rule_ignores_comments():
    code = "function bump() {\n  hits++; // total += 1; seen++\n}"
    assert atomic.detect(_atom(code)) is atomic.STRUCTURAL_ENTRY


def test_count_statements():
    assert atomic.count_statements(atomic.statement_body("function f() { a++; }")) == 1
    assert atomic.count_statements(atomic.statement_body("function f() {\n  a++\n  b = 2\n}")) == 2


def test_atomic_structural_rule_respects_line_limit():
    code = "function bump() {\n  hits++;\n}"
    assert atomic.is_single_statement_update(_atom(code), max_statement_lines=3)
    assert not atomic.is_single_statement_update(_atom(code), max_statement_lines=2)


# ── Transaction ──


def test_transaction_sequelize():
    entry = transaction.detect(_atom("await sequelize.transaction(async (t) => { await save(t); });"))
    assert entry.label == "Sequelize transaction"


def test_transaction_raw_sql():
    entry = transaction.detect(_atom("await client.query('BEGIN');"))
    assert entry.label == "SQL transaction"


def test_extract_transaction_boundary():
    assert transaction.extract_transaction_boundary("await prisma.$transaction([a, b])") == "prisma.$transaction"
    assert transaction.extract_transaction_boundary("runInTransaction(work)") == "runInTransaction"
    assert transaction.extract_transaction_boundary("save()") is None


def test_same_transaction_by_named_boundary():
    atom1 = _atom("await prisma.$transaction([debit])", atom_id="a.js::debit")
    atom2 = _atom("await prisma.$transaction([credit])", atom_id="b.js::credit")
    assert transaction.same_transaction(
        _access("a.js::debit", "a.js"), atom1, _access("b.js::credit", "b.js"), atom2
    )


def test_same_transaction_different_boundaries():
    atom1 = _atom("await knex.transaction(work)", atom_id="a.js::debit")
    atom2 = _atom("await sequelize.transaction(work)", atom_id="b.js::credit")
    assert not transaction.same_transaction(
        _access("a.js::debit", "a.js"), atom1, _access("b.js::credit", "b.js"), atom2
    )


def test_same_transaction_requires_both_sides():
    atom1 = _atom("await knex.transaction(work)", atom_id="a.js::debit")
    atom2 = _atom("await save()", atom_id="a.js::credit")
    assert not transaction.same_transaction(
        _access("a.js::debit", "a.js"), atom1, _access("a.js::credit", "a.js"), atom2
    )


# ── Queue ──


def test_queue_bull():
    entry = queue.detect(_atom("const q = new Queue('emails');"))
    assert entry.label == "Bull queue"


def test_same_queue_by_name():
    atom1 = _atom("emailQueue.add(job)", atom_id="a.js::send")
    atom2 = _atom("await emailQueue.add(other)", atom_id="b.js::resend")
    assert queue.same_queue(_access("a.js::send", "a.js"), atom1, _access("b.js::resend", "b.js"), atom2)


def test_same_queue_different_names():
    atom1 = _atom("emailQueue.add(job)", atom_id="a.js::send")
    atom2 = _atom("smsQueue.add(job)", atom_id="b.js::text")
    assert not queue.same_queue(_access("a.js::send", "a.js"), atom1, _access("b.js::text", "b.js"), atom2)


def test_same_queue_same_file():
    atom1 = _atom("emailQueue.add(job)", atom_id="a.js::send")
    atom2 = _atom("smsQueue.add(job)", atom_id="a.js::text")
    assert queue.same_queue(_access("a.js::send", "a.js"), atom1, _access("a.js::text", "a.js"), atom2)


def test_queue_name_ignores_commented_code():
    atom1 = _atom("// emailQueue.add(job)\nsendNow(job);", atom_id="a.js::send")
    atom2 = _atom("emailQueue.add(job)", atom_id="b.js::resend")
    assert queue.detect(atom1) is None
    assert not queue.same_queue(_access("a.js::send", "a.js"), atom1, _access("b.js::resend", "b.js"), atom2)


# ── Immutable ──


def test_immutable_freeze():
    entry = immutable.detect(_atom("const CONFIG = Object.freeze({ retries: 3 });"))
    assert entry.label == "Object.freeze"


def test_immutable_absent():
    assert immutable.detect(_atom("config.retries = 3;")) is None


# ── Flow ──


def test_flow_same_atom_within_window():
    a1 = _access("a.js::run", "a.js", line=3)
    a2 = _access("a.js::run", "a.js", line=8)
    assert flow.same_business_flow(a1, a2, line_window=10)
    assert not flow.same_business_flow(a1, a2, line_window=4)


def test_flow_different_atoms():
    a1 = _access("a.js::run", "a.js", line=3)
    a2 = _access("a.js::other", "a.js", line=4)
    assert not flow.same_business_flow(a1, a2, line_window=10)


def test_flow_different_files():
    a1 = _access("a.js::run", "a.js", line=3)
    a2 = _access("a.js::run", "b.js", line=3)
    assert not flow.same_business_flow(a1, a2, line_window=10)
