"""
Friends and the friend activity feed.

Users are the UUIDs in the request path. A user gets a profile with a public
slug the first time they use the social features. A friendship starts as a
pending request from `user_id` to `friend_id` and becomes mutual once the
recipient accepts it.
"""

import logging
import secrets
import threading
from dataclasses import replace
from datetime import datetime
from typing import Iterable, List, Optional

import psycopg2
import psycopg2.extras

from coach.constants import (
    FEED_RESULT_LIMIT,
    FEED_WINDOW_DAYS,
    MAX_SLUG_GENERATION_ATTEMPTS,
    SEARCH_MIN_QUERY_LENGTH,
    SEARCH_RESULT_LIMIT,
    SLUG_BYTES,
    USERNAME_MAX_LENGTH,
)
from coach.models import Activity, Friendship, FriendshipStatus, Profile
from coach.storage import generate_id
from coach.units import local_now, parse_timestamp, shift_local_days, to_iso

logger = logging.getLogger(__name__)


class FriendRequestExists(ValueError):
    """Raised when two users already have a pending or accepted friendship."""


# --- Stores ---

class SocialStore:
    """Profiles, friendships and activities for every user."""

    def get_profile(self, user_id: str) -> Optional[Profile]:
        raise NotImplementedError

    def get_profile_by_slug(self, slug: str) -> Optional[Profile]:
        raise NotImplementedError

    def get_profiles(self, user_ids: Iterable[str]) -> List[Profile]:
        raise NotImplementedError

    def save_profile(self, profile: Profile) -> None:
        raise NotImplementedError

    def search_profiles(self, query: str, exclude_user_id: str, limit: int) -> List[Profile]:
        raise NotImplementedError

    def get_friendship(self, friendship_id: str) -> Optional[Friendship]:
        raise NotImplementedError

    def friendships_for(self, user_id: str, status: Optional[FriendshipStatus] = None) -> List[Friendship]:
        """Friendships where the user is on either side, optionally filtered by status."""
        raise NotImplementedError

    def add_friendship(self, friendship: Friendship) -> None:
        raise NotImplementedError

    def set_friendship_status(self, friendship_id: str, status: FriendshipStatus) -> None:
        raise NotImplementedError

    def delete_friendship(self, friendship_id: str) -> None:
        raise NotImplementedError

    def add_activity(self, activity: Activity) -> None:
        raise NotImplementedError

    def activities_for(self, user_ids: Iterable[str], since: datetime, limit: int) -> List[Activity]:
        """Activities of the given users created at or after `since`, newest first."""
        raise NotImplementedError


class InMemorySocialStore(SocialStore):
    def __init__(self):
        self._profiles = {}
        self._friendships = {}
        self._activities = []
        self._lock = threading.Lock()

    def get_profile(self, user_id):
        with self._lock:
            return self._profiles.get(str(user_id))

    def get_profile_by_slug(self, slug):
        with self._lock:
            return next((p for p in self._profiles.values() if p.slug == slug), None)

    def get_profiles(self, user_ids):
        wanted = {str(user_id) for user_id in user_ids}
        with self._lock:
            return [p for p in self._profiles.values() if p.user_id in wanted]

    def save_profile(self, profile):
        with self._lock:
            self._profiles[profile.user_id] = profile

    def search_profiles(self, query, exclude_user_id, limit):
        needle = query.lower()
        with self._lock:
            matches = [
                p for p in self._profiles.values()
                if p.user_id != exclude_user_id
                and (needle in (p.username or '').lower() or needle in p.slug.lower())
            ]
        return matches[:limit]

    def get_friendship(self, friendship_id):
        with self._lock:
            return self._friendships.get(str(friendship_id))

    def friendships_for(self, user_id, status=None):
        with self._lock:
            return [
                f for f in self._friendships.values()
                if f.involves(str(user_id)) and (status is None or f.status == status)
            ]

    def add_friendship(self, friendship):
        with self._lock:
            self._friendships[friendship.id] = friendship

    def set_friendship_status(self, friendship_id, status):
        with self._lock:
            friendship = self._friendships.get(str(friendship_id))
            if friendship is not None:
                self._friendships[friendship.id] = replace(friendship, status=status)

    def delete_friendship(self, friendship_id):
        with self._lock:
            self._friendships.pop(str(friendship_id), None)

    def add_activity(self, activity):
        with self._lock:
            self._activities.append(activity)

    def activities_for(self, user_ids, since, limit):
        wanted = {str(user_id) for user_id in user_ids}
        with self._lock:
            matches = [
                a for a in self._activities
                if a.user_id in wanted and parse_timestamp(a.created_at) >= since
            ]
        matches.sort(key=lambda a: parse_timestamp(a.created_at), reverse=True)
        return matches[:limit]


def _iso(value) -> Optional[str]:
    return to_iso(value) if value is not None else None


def _profile_from_row(row) -> Profile:
    return Profile(
        user_id=str(row['user_id']),
        slug=row['slug'],
        username=row['username'],
        last_active=_iso(row['last_active']),
    )


def _friendship_from_row(row) -> Friendship:
    return Friendship(
        id=str(row['id']),
        user_id=str(row['user_id']),
        friend_id=str(row['friend_id']),
        status=FriendshipStatus(row['status']),
        created_at=_iso(row['created_at']),
    )


def _activity_from_row(row) -> Activity:
    return Activity(
        id=str(row['id']),
        user_id=str(row['user_id']),
        workout_type=row['workout_type'],
        summary=row['summary'],
        created_at=_iso(row['created_at']),
        duration=row['duration'],
    )


PROFILE_COLUMNS = "user_id, username, slug, last_active"
FRIENDSHIP_COLUMNS = "id, user_id, friend_id, status, created_at"
ACTIVITY_COLUMNS = "id, user_id, workout_type, duration, summary, created_at"


class PostgresSocialStore(SocialStore):
    """
    Backs the social features with the `profiles`, `friendships` and
    `activities` tables.

    Args:
        get_connection: Callable returning a pooled psycopg2 connection.
        release_connection: Callable returning that connection to the pool.
    """

    def __init__(self, get_connection, release_connection):
        self._get_connection = get_connection
        self._release_connection = release_connection

    def _execute(self, query, params=(), fetch=None):
        conn = None
        try:
            conn = self._get_connection()
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, params)
                if fetch == 'one':
                    result = cur.fetchone()
                elif fetch == 'all':
                    result = cur.fetchall()
                else:
                    result = None
            conn.commit()
            return result
        except psycopg2.Error as e:
            logger.error(f"Database error in social store: {e}", exc_info=True)
            if conn:
                conn.rollback()
            raise
        finally:
            if conn:
                self._release_connection(conn)

    def get_profile(self, user_id):
        row = self._execute(
            f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE user_id = %s;", (str(user_id),), fetch='one'
        )
        return _profile_from_row(row) if row else None

    def get_profile_by_slug(self, slug):
        row = self._execute(f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE slug = %s;", (slug,), fetch='one')
        return _profile_from_row(row) if row else None

    def get_profiles(self, user_ids):
        ids = sorted({str(user_id) for user_id in user_ids})
        if not ids:
            return []
        rows = self._execute(
            f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE user_id::text = ANY(%s);", (ids,), fetch='all'
        )
        return [_profile_from_row(row) for row in rows]

    def save_profile(self, profile):
        self._execute(
            """
            INSERT INTO profiles (user_id, username, slug, last_active)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (user_id) DO UPDATE
            SET username = EXCLUDED.username, slug = EXCLUDED.slug, last_active = EXCLUDED.last_active;
            """,
            (profile.user_id, profile.username, profile.slug, profile.last_active),
        )

    def search_profiles(self, query, exclude_user_id, limit):
        pattern = f"%{query}%"
        rows = self._execute(
            f"""
            SELECT {PROFILE_COLUMNS} FROM profiles
            WHERE (username ILIKE %s OR slug ILIKE %s) AND user_id <> %s
            ORDER BY username NULLS LAST, slug
            LIMIT %s;
            """,
            (pattern, pattern, exclude_user_id, limit),
            fetch='all',
        )
        return [_profile_from_row(row) for row in rows]

    def get_friendship(self, friendship_id):
        row = self._execute(
            f"SELECT {FRIENDSHIP_COLUMNS} FROM friendships WHERE id = %s;", (str(friendship_id),), fetch='one'
        )
        return _friendship_from_row(row) if row else None

    def friendships_for(self, user_id, status=None):
        query = f"SELECT {FRIENDSHIP_COLUMNS} FROM friendships WHERE (user_id = %s OR friend_id = %s)"
        params = [str(user_id), str(user_id)]
        if status is not None:
            query += " AND status = %s"
            params.append(status.value)
        rows = self._execute(query + " ORDER BY created_at;", tuple(params), fetch='all')
        return [_friendship_from_row(row) for row in rows]

    def add_friendship(self, friendship):
        self._execute(
            f"INSERT INTO friendships ({FRIENDSHIP_COLUMNS}) VALUES (%s, %s, %s, %s, %s);",
            (friendship.id, friendship.user_id, friendship.friend_id, friendship.status.value, friendship.created_at),
        )

    def set_friendship_status(self, friendship_id, status):
        self._execute("UPDATE friendships SET status = %s WHERE id = %s;", (status.value, str(friendship_id)))

    def delete_friendship(self, friendship_id):
        self._execute("DELETE FROM friendships WHERE id = %s;", (str(friendship_id),))

    def add_activity(self, activity):
        self._execute(
            f"INSERT INTO activities ({ACTIVITY_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s);",
            (activity.id, activity.user_id, activity.workout_type, activity.duration,
             activity.summary, activity.created_at),
        )

    def activities_for(self, user_ids, since, limit):
        ids = sorted({str(user_id) for user_id in user_ids})
        if not ids:
            return []
        rows = self._execute(
            f"""
            SELECT {ACTIVITY_COLUMNS} FROM activities
            WHERE user_id::text = ANY(%s) AND created_at >= %s
            ORDER BY created_at DESC
            LIMIT %s;
            """,
            (ids, since, limit),
            fetch='all',
        )
        return [_activity_from_row(row) for row in rows]


# --- Profiles ---

def _new_slug(store: SocialStore) -> str:
    for _ in range(MAX_SLUG_GENERATION_ATTEMPTS):
        slug = secrets.token_hex(SLUG_BYTES)
        if store.get_profile_by_slug(slug) is None:
            return slug
    raise RuntimeError("Failed to generate a unique profile slug after multiple attempts.")


def ensure_profile(store: SocialStore, user_id) -> Profile:
    user_id = str(user_id)
    profile = store.get_profile(user_id)
    if profile is None:
        profile = Profile(user_id=user_id, slug=_new_slug(store))
        store.save_profile(profile)
        logger.info(f"Created profile for user {user_id} with slug {profile.slug}.")
    return profile


def update_profile(store: SocialStore, user_id, username) -> Profile:
    if username is not None and (not isinstance(username, str) or not username.strip()):
        raise ValueError("'username' must be a non-empty string.")
    if username is not None and len(username.strip()) > USERNAME_MAX_LENGTH:
        raise ValueError(f"'username' must be at most {USERNAME_MAX_LENGTH} characters.")
    profile = replace(ensure_profile(store, user_id), username=username.strip() if username else None)
    store.save_profile(profile)
    return profile


def search_users(store: SocialStore, user_id, query) -> List[Profile]:
    """Profiles whose username or slug contains `query`, excluding the caller."""
    query = query.strip() if isinstance(query, str) else ''
    if len(query) < SEARCH_MIN_QUERY_LENGTH:
        return []
    return store.search_profiles(query, str(user_id), SEARCH_RESULT_LIMIT)


# --- Friendships ---

def send_friend_request(store: SocialStore, user_id, friend_user_id, now: Optional[datetime] = None) -> Friendship:
    """
    Creates a pending request from `user_id` to `friend_user_id`.

    Raises:
        ValueError: the user befriends themselves.
        LookupError: the recipient has no profile.
        FriendRequestExists: a friendship exists in either direction.
    """
    user_id, friend_user_id = str(user_id), str(friend_user_id)
    if user_id == friend_user_id:
        raise ValueError("You cannot send a friend request to yourself.")
    if store.get_profile(friend_user_id) is None:
        raise LookupError("User not found.")
    ensure_profile(store, user_id)
    if any(f.other(user_id) == friend_user_id for f in store.friendships_for(user_id)):
        raise FriendRequestExists("Friend request already exists")

    now = parse_timestamp(now) if now else local_now()
    friendship = Friendship(
        id=generate_id(),
        user_id=user_id,
        friend_id=friend_user_id,
        status=FriendshipStatus.PENDING,
        created_at=to_iso(now),
    )
    store.add_friendship(friendship)
    logger.info(f"User {user_id} sent friend request {friendship.id} to {friend_user_id}.")
    return friendship


def accept_request(store: SocialStore, user_id, friendship_id) -> Friendship:
    """Only the recipient of a pending request can accept it."""
    friendship = store.get_friendship(str(friendship_id))
    if (
        friendship is None
        or friendship.friend_id != str(user_id)
        or friendship.status != FriendshipStatus.PENDING
    ):
        raise LookupError("Friend request not found.")
    store.set_friendship_status(friendship.id, FriendshipStatus.ACCEPTED)
    logger.info(f"User {user_id} accepted friend request {friendship.id}.")
    return replace(friendship, status=FriendshipStatus.ACCEPTED)


def remove_friend(store: SocialStore, user_id, friendship_id) -> None:
    """Deletes a friendship or request; either side may remove it."""
    friendship = store.get_friendship(str(friendship_id))
    if friendship is None or not friendship.involves(str(user_id)):
        raise LookupError("Friendship not found.")
    store.delete_friendship(friendship.id)
    logger.info(f"User {user_id} removed friendship {friendship.id}.")


def _profiles_by_id(store: SocialStore, user_ids) -> dict:
    return {profile.user_id: profile for profile in store.get_profiles(user_ids)}


def list_friends(store: SocialStore, user_id) -> List[dict]:
    user_id = str(user_id)
    friendships = store.friendships_for(user_id, FriendshipStatus.ACCEPTED)
    profiles = _profiles_by_id(store, [f.other(user_id) for f in friendships])
    friends = []
    for friendship in friendships:
        profile = profiles.get(friendship.other(user_id))
        if profile is None:
            continue
        friends.append({**profile.to_dict(), 'friendship_id': friendship.id, 'status': friendship.status.value})
    return friends


def pending_requests(store: SocialStore, user_id) -> List[dict]:
    """Pending requests sent to the user, with the sender's username and slug."""
    user_id = str(user_id)
    incoming = [f for f in store.friendships_for(user_id, FriendshipStatus.PENDING) if f.friend_id == user_id]
    profiles = _profiles_by_id(store, [f.user_id for f in incoming])
    requests = []
    for friendship in incoming:
        sender = profiles.get(friendship.user_id)
        requests.append({
            **friendship.to_dict(),
            'sender_username': sender.username if sender else None,
            'sender_slug': sender.slug if sender else '',
        })
    return requests


# --- Activity feed ---

def _validate_duration(duration) -> Optional[int]:
    if duration is None:
        return None
    try:
        duration = int(duration)
    except (TypeError, ValueError, OverflowError):
        raise ValueError("'duration' must be a whole number of minutes.")
    if duration < 0:
        raise ValueError("'duration' cannot be negative.")
    return duration


def post_activity(
    store: SocialStore,
    user_id,
    workout_type,
    summary,
    duration=None,
    now: Optional[datetime] = None,
) -> Activity:
    """Records a finished workout for the user's friends and bumps `last_active`."""
    for name, value in (('workout_type', workout_type), ('summary', summary)):
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"'{name}' must be a non-empty string.")
    duration = _validate_duration(duration)
    now = parse_timestamp(now) if now else local_now()

    profile = ensure_profile(store, user_id)
    activity = Activity(
        id=generate_id(),
        user_id=profile.user_id,
        workout_type=workout_type.strip(),
        summary=summary.strip(),
        created_at=to_iso(now),
        duration=duration,
    )
    store.add_activity(activity)
    store.save_profile(replace(profile, last_active=activity.created_at))
    return activity


def activity_feed(store: SocialStore, user_id, now: Optional[datetime] = None) -> List[dict]:
    """Friends' activities from the last 7 days, newest first, at most 50."""
    user_id = str(user_id)
    friend_ids = [f.other(user_id) for f in store.friendships_for(user_id, FriendshipStatus.ACCEPTED)]
    if not friend_ids:
        return []
    now = parse_timestamp(now) if now else local_now()
    since = shift_local_days(now, -FEED_WINDOW_DAYS)
    activities = store.activities_for(friend_ids, since, FEED_RESULT_LIMIT)
    profiles = _profiles_by_id(store, {a.user_id for a in activities})
    feed = []
    for activity in activities:
        profile = profiles.get(activity.user_id)
        feed.append({
            **activity.to_dict(),
            'username': profile.username if profile else None,
            'slug': profile.slug if profile else '',
        })
    return feed


__all__ = [
    "FriendRequestExists",
    "SocialStore",
    "InMemorySocialStore",
    "PostgresSocialStore",
    "ensure_profile",
    "update_profile",
    "search_users",
    "send_friend_request",
    "accept_request",
    "remove_friend",
    "list_friends",
    "pending_requests",
    "post_activity",
    "activity_feed",
]
