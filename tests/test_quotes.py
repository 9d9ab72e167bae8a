"""
Tests for quotes.py - submission, reclassification and consistency.
"""

import threading

import pytest

from tradequote.database import Job, Quote, QuoteStatus, Role, User, get_session, session_scope
from tradequote import quotes as quotes_module
from tradequote.errors import Conflict, DomainInvariantViolation, InvalidInput, NotFound, PermissionDenied
from tradequote.quotes import list_quotes, recompute_job_quotes, submit_quote
from tradequote.stats import audit_jobs
from tradequote.transaction import run_in_transaction
from storage.repositories import quotes as quotes_repo


def _statuses(session, job_id):
    return {q.pro_id: q.status for q in list_quotes(session, job_id=job_id)}


class TestSubmitQuote:
    """Test the submission unit of work."""

    def test_first_quote_sets_average(self, session, job, make_pro):
        pro = make_pro()
        quote = submit_quote(session, job.id, pro.id, 1200, "Four weeks, materials included")

        assert quote.status == QuoteStatus.ABOUT_RIGHT
        assert quote.comment == "Four weeks, materials included"
        assert session.get(Job, job.id).average_quote == 1200

    def test_new_quote_reclassifies_existing(self, session, job, make_pro):
        """{100, 100, 100} then 70 -> 92.5, only the 70 is LOWER."""
        pros = [make_pro() for _ in range(4)]
        for pro in pros[:3]:
            submit_quote(session, job.id, pro.id, 100)
        assert session.get(Job, job.id).average_quote == 100

        low = submit_quote(session, job.id, pros[3].id, 70)

        assert session.get(Job, job.id).average_quote == pytest.approx(92.5)
        assert low.status == QuoteStatus.LOWER
        statuses = _statuses(session, job.id)
        for pro in pros[:3]:
            assert statuses[pro.id] == QuoteStatus.ABOUT_RIGHT

    def test_prior_quote_status_flips(self, session, job, make_pro):
        """{1000} then 2000 -> the stored 1000 becomes LOWER."""
        first, second = make_pro(), make_pro()
        q1 = submit_quote(session, job.id, first.id, 1000)
        assert q1.status == QuoteStatus.ABOUT_RIGHT

        q2 = submit_quote(session, job.id, second.id, 2000)

        assert session.get(Job, job.id).average_quote == pytest.approx(1500)
        assert q2.status == QuoteStatus.HIGHER
        assert session.get(Quote, q1.id).status == QuoteStatus.LOWER

    def test_close_quotes_stay_about_right(self, session, job, make_pro):
        first, second = make_pro(), make_pro()
        submit_quote(session, job.id, first.id, 1000)
        submit_quote(session, job.id, second.id, 1300)

        assert session.get(Job, job.id).average_quote == pytest.approx(1150)
        assert set(_statuses(session, job.id).values()) == {QuoteStatus.ABOUT_RIGHT}

    def test_duplicate_quote_conflicts_without_changes(self, session, job, make_pro):
        first, second = make_pro(), make_pro()
        submit_quote(session, job.id, first.id, 1000)
        submit_quote(session, job.id, second.id, 2000)
        session.commit()
        before_avg = session.get(Job, job.id).average_quote
        before_statuses = _statuses(session, job.id)

        with pytest.raises(Conflict):
            submit_quote(session, job.id, first.id, 50)
        session.rollback()

        assert session.get(Job, job.id).average_quote == before_avg
        assert _statuses(session, job.id) == before_statuses
        assert len(list_quotes(session, job_id=job.id)) == 2

    def test_unknown_job_not_found(self, session, make_pro):
        pro = make_pro()
        with pytest.raises(NotFound):
            submit_quote(session, "missing", pro.id, 100)
        assert list_quotes(session) == []

    def test_plain_user_denied(self, session, job, make_user):
        user = make_user(Role.USER, subscribed=True)
        with pytest.raises(PermissionDenied):
            submit_quote(session, job.id, user.id, 100)

    def test_unsubscribed_pro_denied(self, session, job, make_user):
        pro = make_user(Role.PRO, subscribed=False)
        with pytest.raises(PermissionDenied):
            submit_quote(session, job.id, pro.id, 100)
        assert session.get(Job, job.id).average_quote is None

    def test_unknown_submitter_denied(self, session, job):
        with pytest.raises(PermissionDenied):
            submit_quote(session, job.id, "nobody", 100)

    def test_permission_checked_before_job_lookup(self, session, make_user):
        pro = make_user(Role.PRO, subscribed=False)
        with pytest.raises(PermissionDenied):
            submit_quote(session, "missing", pro.id, 100)

    @pytest.mark.parametrize("amount", [0, -10, float("nan"), float("inf"), None, "100"])
    def test_invalid_amount_rejected(self, session, job, make_pro, amount):
        pro = make_pro()
        with pytest.raises(InvalidInput):
            submit_quote(session, job.id, pro.id, amount)
        assert list_quotes(session, job_id=job.id) == []

    def test_aggregation_failure_not_counted_as_rejection(self, session, job, make_pro, monkeypatch):
        def broken(*args, **kwargs):
            raise DomainInvariantViolation("average is zero")

        monkeypatch.setattr(quotes_module.aggregator, "recompute_job", broken)
        before = dict(quotes_module.logger.get_metrics()["quotes_rejected"])

        with pytest.raises(DomainInvariantViolation):
            submit_quote(session, job.id, make_pro().id, 100)
        assert quotes_module.logger.get_metrics()["quotes_rejected"] == before


class TestRecompute:
    """Test recompute over the stored set."""

    def test_recompute_is_idempotent(self, session, job, make_pro):
        for amount in (1000, 1250, 2100):
            submit_quote(session, job.id, make_pro().id, amount)
        avg = session.get(Job, job.id).average_quote
        statuses = _statuses(session, job.id)

        result = recompute_job_quotes(session, job.id)

        assert result.updated_average == pytest.approx(avg, abs=1e-9)
        assert session.get(Job, job.id).average_quote == pytest.approx(avg, abs=1e-9)
        assert _statuses(session, job.id) == statuses

    def test_recompute_repairs_drift(self, session, job, make_pro):
        first, second = make_pro(), make_pro()
        submit_quote(session, job.id, first.id, 1000)
        q2 = submit_quote(session, job.id, second.id, 2000)
        session.get(Job, job.id).average_quote = 1
        q2.status = QuoteStatus.ABOUT_RIGHT
        session.flush()
        assert audit_jobs(session)

        recompute_job_quotes(session, job.id)

        assert audit_jobs(session) == []
        assert session.get(Quote, q2.id).status == QuoteStatus.HIGHER

    def test_recompute_without_quotes(self, session, job):
        result = recompute_job_quotes(session, job.id)
        assert result.updated_average is None
        assert session.get(Job, job.id).average_quote is None

    def test_recompute_unknown_job(self, session):
        with pytest.raises(NotFound):
            recompute_job_quotes(session, "missing")


class TestListQuotes:
    """Test quote listing filters."""

    def test_filter_by_job_and_pro(self, session, job, poster, make_pro):
        other = Job(user_id=poster.id, title="Roof", description="Fix tiles", category="Roofing", location="Leeds")
        session.add(other)
        session.flush()
        pro_a, pro_b = make_pro(), make_pro()
        submit_quote(session, job.id, pro_a.id, 100)
        submit_quote(session, job.id, pro_b.id, 110)
        submit_quote(session, other.id, pro_a.id, 300)

        assert len(list_quotes(session, job_id=job.id)) == 2
        assert len(list_quotes(session, pro_id=pro_a.id)) == 2
        assert len(list_quotes(session, job_id=other.id, pro_id=pro_a.id)) == 1
        assert len(list_quotes(session)) == 3


class TestUniqueConstraint:
    """The database rejects duplicates even past the service check."""

    def test_repository_insert_raises_conflict(self, session, job, make_pro):
        pro = make_pro()
        quotes_repo.insert_quote(session, Quote(job_id=job.id, pro_id=pro.id, amount=100))

        with pytest.raises(Conflict):
            quotes_repo.insert_quote(session, Quote(job_id=job.id, pro_id=pro.id, amount=200))

        # The savepoint rollback leaves the outer transaction usable
        assert len(list_quotes(session, job_id=job.id)) == 1


class TestConcurrentSubmissions:
    """Racing submissions for one job serialise and stay consistent."""

    def test_parallel_submissions_leave_consistent_state(self, db_path):
        amounts = [100, 250, 400, 90, 1000, 130, 175, 60]
        with session_scope(db_path) as s:
            poster = User(email="poster@example.com", role=Role.USER)
            s.add(poster)
            s.flush()
            job = Job(user_id=poster.id, title="Loft", description="Conversion", category="Loft", location="Bath")
            s.add(job)
            pros = [User(email=f"pro{i}@example.com", role=Role.PRO, is_subscribed=True) for i in range(len(amounts))]
            s.add_all(pros)
            s.flush()
            job_id = job.id
            pro_ids = [p.id for p in pros]

        errors = []

        def submit(pro_id, amount):
            try:
                run_in_transaction(db_path, submit_quote, job_id, pro_id, amount)
            except Exception as e:  # collected and asserted below
                errors.append(e)

        threads = [threading.Thread(target=submit, args=args) for args in zip(pro_ids, amounts)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        session = get_session(db_path)
        try:
            stored = session.get(Job, job_id)
            assert len(list_quotes(session, job_id=job_id)) == len(amounts)
            assert stored.average_quote == pytest.approx(sum(amounts) / len(amounts), abs=1e-9)
            assert audit_jobs(session) == []
        finally:
            session.close()

    def test_racing_duplicates_yield_one_quote(self, db_path):
        with session_scope(db_path) as s:
            poster = User(email="poster@example.com", role=Role.USER)
            pro = User(email="pro@example.com", role=Role.PRO, is_subscribed=True)
            s.add_all([poster, pro])
            s.flush()
            job = Job(user_id=poster.id, title="Deck", description="Build", category="Garden", location="York")
            s.add(job)
            s.flush()
            job_id, pro_id = job.id, pro.id

        outcomes = []

        def submit(amount):
            try:
                run_in_transaction(db_path, submit_quote, job_id, pro_id, amount)
                outcomes.append("ok")
            except Conflict:
                outcomes.append("conflict")

        threads = [threading.Thread(target=submit, args=(a,)) for a in (100, 200, 300, 400)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["conflict", "conflict", "conflict", "ok"]
        session = get_session(db_path)
        try:
            assert len(list_quotes(session, job_id=job_id)) == 1
            assert audit_jobs(session) == []
        finally:
            session.close()
