"""
Community Board, Destinations & Hike Plans.

Local-only features: nothing here is persisted to the store. Posts and
plans live for the lifetime of the visitor session.
"""

import itertools
from datetime import date
from typing import List, Optional

from trailhub.config import StateEvent
from trailhub.core.errors import NotAuthenticatedError, ValidationError
from trailhub.core.models import CommunityPost, Destination, HikePlan, Identity, Trail
from trailhub.state.observable import Observable

POPULAR_DESTINATIONS: List[Destination] = [
    Destination(name="Japan", country="Japan", count=45, image="/japan-mountain-hiking-trail.png"),
    Destination(name="Nepal", country="Nepal", count=32, image="/nepal-himalaya-trek.png"),
    Destination(name="Korea", country="Korea", count=28, image="/korea-autumn-hike.png"),
    Destination(name="Indonesia", country="Indonesia", count=24, image="/indonesia-volcano-hiking.png"),
    Destination(name="Bhutan", country="Bhutan", count=18, image="/placeholder.svg"),
    Destination(name="Taiwan", country="Taiwan", count=22, image="/placeholder.svg"),
]

SEED_POSTS: List[CommunityPost] = [
    CommunityPost(
        id=1,
        title="Mt. Fuji climb - the sunrise was unforgettable!",
        author="hiker123",
        posted="2 hours ago",
        replies=12,
        content="Climbed Fuji yesterday. We set off at 3am and watching the sunrise was incredibly moving!",
    ),
    CommunityPost(
        id=2,
        title="Gear checklist for the Annapurna trek",
        author="mountaineer",
        posted="5 hours ago",
        replies=8,
        content="For everyone preparing for Annapurna, here is the list of essentials I put together.",
    ),
    CommunityPost(
        id=3,
        title="Finished every Jeju Olle route!",
        author="jejulover",
        posted="1 day ago",
        replies=24,
        content="Finally walked the whole Jeju Olle trail. So proud!",
    ),
]


def select_destination(name: str) -> str:
    """Country filter value to apply when a destination card is picked."""
    for destination in POPULAR_DESTINATIONS:
        if destination.name.lower() == (name or "").strip().lower():
            return destination.country
    raise ValidationError(f"Unknown destination: {name!r}")


class CommunityBoard(Observable):

    def __init__(self) -> None:
        super().__init__()
        self.posts: List[CommunityPost] = [p.model_copy() for p in SEED_POSTS]
        self._ids = itertools.count(len(SEED_POSTS) + 1)

    def get(self, post_id: int) -> Optional[CommunityPost]:
        return next((p for p in self.posts if p.id == post_id), None)

    def add_post(self, identity: Optional[Identity], author: str, title: str, content: str) -> CommunityPost:
        if identity is None:
            raise NotAuthenticatedError()
        if not title or not title.strip() or not content or not content.strip():
            raise ValidationError("A post needs both a title and some content.")

        post = CommunityPost(
            id=next(self._ids),
            title=title.strip(),
            author=author or identity.name,
            posted="just now",
            content=content.strip(),
        )
        self.posts.insert(0, post)
        self._notify(StateEvent.COMMUNITY, post_id=post.id)
        return post


class HikePlanner(Observable):

    def __init__(self) -> None:
        super().__init__()
        self.plans: List[HikePlan] = []
        self._ids = itertools.count(1)

    def plan(self, identity: Optional[Identity], trail: Trail) -> HikePlan:
        if identity is None:
            raise NotAuthenticatedError()
        entry = HikePlan(
            id=next(self._ids),
            trail_id=trail.id,
            trail_name=trail.name,
            planned_on=date.today(),
        )
        self.plans.append(entry)
        self._notify(StateEvent.PLANS, trail_id=trail.id, count=len(self.plans))
        return entry

    def clear(self) -> None:
        self.plans = []
        self._notify(StateEvent.PLANS, count=0)
