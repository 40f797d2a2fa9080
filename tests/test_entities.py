"""Unit tests for domain entities. No I/O."""

import pytest

from rapport.domain import Account, ChangeDelta, Chat, FeedScope, Profile, Request


def _account(**sets) -> Account:
    return Account(profile=Profile(id="me", user_name="Me"), **sets)


def test_profile_requires_id() -> None:
    with pytest.raises(ValueError):
        Profile(id="")
    with pytest.raises(ValueError):
        Profile(id="   ")


def test_profile_rejects_negative_posts_count() -> None:
    with pytest.raises(ValueError):
        Profile(id="u1", posts_count=-1)


def test_account_id_is_profile_id() -> None:
    assert _account().id == "me"


def test_blocked_ids_evicted_on_construction() -> None:
    account = _account(
        blocked_ids={"u1"},
        friend_ids={"u1", "u2"},
        waiting_ids={"u1"},
        request_ids={"u1", "u3"},
    )
    assert account.friend_ids == {"u2"}
    assert account.waiting_ids == set()
    assert account.request_ids == {"u3"}


def test_block_evicts_from_every_set() -> None:
    account = _account(friend_ids={"u1"}, waiting_ids={"u1"}, request_ids={"u1"})
    account.block("u1")
    assert account.is_blocked("u1")
    assert not account.is_friend("u1")
    assert not account.is_waiting("u1")
    assert not account.is_requested("u1")


def test_unblock_does_not_restore_friendship() -> None:
    account = _account(friend_ids={"u1"})
    account.block("u1")
    account.unblock("u1")
    assert not account.is_blocked("u1")
    assert not account.is_friend("u1")


def test_reset_blocked_replaces_and_evicts() -> None:
    account = _account(blocked_ids={"old"}, friend_ids={"u1", "u2"})
    account.reset_blocked(["u1"])
    assert account.blocked_ids == {"u1"}
    assert account.friend_ids == {"u2"}


def test_add_request_skips_blocked() -> None:
    account = _account(blocked_ids={"u1"})
    account.add_request("u1")
    account.add_request("u2")
    assert account.request_ids == {"u2"}


def test_accept_request_moves_waiting_to_friends() -> None:
    account = _account(waiting_ids={"u1"})
    account.accept_request("u1")
    assert account.friend_ids == {"u1"}
    assert account.waiting_ids == set()


def test_removals_are_by_value() -> None:
    account = _account(friend_ids={"u1", "u2"}, waiting_ids={"u3"}, request_ids={"u4"})
    account.remove_friend("u1")
    account.remove_friend("missing")
    account.deny_request("u3")
    account.cancel_request("u4")
    assert account.friend_ids == {"u2"}
    assert account.waiting_ids == set()
    assert account.request_ids == set()


def test_apply_delta_adds_then_removes() -> None:
    account = _account(friend_ids={"u1"})
    account.apply(ChangeDelta(FeedScope.FRIENDS, added={"u2"}, removed={"u1"}))
    assert account.friend_ids == {"u2"}


def test_apply_delta_with_same_id_added_and_removed_drops_it() -> None:
    account = _account()
    account.apply(ChangeDelta(FeedScope.REQUESTS, added={"u1"}, removed={"u1"}))
    assert account.waiting_ids == set()


def test_apply_delta_is_idempotent() -> None:
    account = _account(request_ids={"u1"})
    delta = ChangeDelta(FeedScope.SENT_REQUESTS, added={"u2"}, removed={"u1"})
    account.apply(delta)
    once = account.copy()
    account.apply(delta)
    assert account == once
    assert account.request_ids == {"u2"}


def test_apply_delta_never_readds_blocked() -> None:
    account = _account(blocked_ids={"u1"})
    account.apply(ChangeDelta(FeedScope.FRIENDS, added={"u1", "u2"}))
    assert account.friend_ids == {"u2"}


def test_delta_coerces_iterables_to_frozensets() -> None:
    delta = ChangeDelta(FeedScope.FRIENDS, added=["u1", "u1"], removed=("u2",))
    assert delta.added == frozenset({"u1"})
    assert delta.removed == frozenset({"u2"})


def test_overwrite_replaces_everything() -> None:
    account = _account(friend_ids={"u1"})
    fresh = Account(profile=Profile(id="me", user_name="New"), waiting_ids={"u2"})
    account.overwrite(fresh)
    assert account.profile.user_name == "New"
    assert account.friend_ids == set()
    assert account.waiting_ids == {"u2"}
    fresh.waiting_ids.add("u3")
    assert account.waiting_ids == {"u2"}


def test_copy_is_independent() -> None:
    account = _account(friend_ids={"u1"})
    copied = account.copy()
    copied.friend_ids.add("u2")
    assert account.friend_ids == {"u1"}


def test_chat_and_request_from_profile() -> None:
    profile = Profile(id="u1", user_name="Alice")
    assert Chat.for_profile(profile) == Chat(friend_id="u1", friend=profile)
    assert Request.for_profile(profile) == Request(sender_id="u1", sender=profile)
