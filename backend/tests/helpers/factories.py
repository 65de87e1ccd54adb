"""Row builders shared by unit and route tests."""

from itertools import count
from typing import List, Optional

from sqlalchemy.orm import Session

from idbroker.models.client import ClientApplication
from idbroker.models.user import Group, User

_sequence = count(1)


def create_user(
    db: Session,
    *,
    username: Optional[str] = None,
    email: Optional[str] = None,
    name: str = "Test User",
    is_admin: bool = False,
    is_suspended: bool = False,
) -> User:
    n = next(_sequence)
    user = User(
        username=username or f"user{n}",
        email=email or f"user{n}@example.com",
        name=name,
        is_admin=is_admin,
        is_suspended=is_suspended,
    )
    db.add(user)
    db.commit()
    return user


def create_group(db: Session, *, slug: Optional[str] = None, members: Optional[List[User]] = None) -> Group:
    n = next(_sequence)
    group = Group(slug=slug or f"group-{n}", name=f"Group {n}")
    group.members = list(members or [])
    db.add(group)
    db.commit()
    return group


def create_client(
    db: Session,
    *,
    redirect_uris: Optional[List[str]] = None,
    default_allowed: bool = True,
    allow_explicit_flow: bool = True,
    allow_implicit_flow: bool = False,
    is_disabled: bool = False,
    is_managed: bool = False,
    app_name: str = "Example App",
) -> ClientApplication:
    client = ClientApplication(
        app_name=app_name,
        app_description="An application used in tests",
        redirect_uris=redirect_uris or ["https://app.example.com/callback"],
        default_allowed=default_allowed,
        allow_explicit_flow=allow_explicit_flow,
        allow_implicit_flow=allow_implicit_flow,
        is_disabled=is_disabled,
        is_managed=is_managed,
    )
    db.add(client)
    db.commit()
    return client
