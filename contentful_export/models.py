"""
Data types shared by the collection and aggregation steps.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

ADMIN_ROLE_LABEL = 'Admin'
JOIN_SEPARATOR = '; '
CSV_COLUMNS = ['userId', 'email', 'name', 'orgRoles', 'spaceRoles', 'teams']


def get_sys_id(entity: Any) -> Optional[str]:
    """Return entity['sys']['id'] or None when any level is missing"""
    if not isinstance(entity, dict):
        return None
    sys_block = entity.get('sys')
    if not isinstance(sys_block, dict):
        return None
    return sys_block.get('id') or None


def get_membership_user_id(membership: Dict[str, Any]) -> Optional[str]:
    """Resolve the user id a membership points to (sys.user.sys.id)"""
    sys_block = membership.get('sys') if isinstance(membership, dict) else None
    if not isinstance(sys_block, dict):
        return None
    return get_sys_id(sys_block.get('user'))


def _append_unique(target: List[str], values: List[str]) -> None:
    for value in values:
        if value not in target:
            target.append(value)


@dataclass
class RoleIndicators:
    """The three ways a membership can express its roles; any may be empty"""
    admin: bool = False
    role_names: List[str] = field(default_factory=list)
    legacy_role: Optional[str] = None

    @classmethod
    def from_membership(cls, membership: Dict[str, Any]) -> 'RoleIndicators':
        roles = membership.get('roles')
        role_names = []
        if isinstance(roles, list):
            for role in roles:
                # e.g. role = {'name': 'Editor', 'sys': {...}}
                if isinstance(role, dict) and role.get('name'):
                    role_names.append(role['name'])
        return cls(
            admin=bool(membership.get('admin')),
            role_names=role_names,
            legacy_role=membership.get('role') or None,
        )

    def names(self) -> List[str]:
        results = []
        if self.admin:
            results.append(ADMIN_ROLE_LABEL)
        results.extend(self.role_names)
        if self.legacy_role:
            results.append(self.legacy_role)
        deduped: List[str] = []
        _append_unique(deduped, results)
        return deduped


def extract_role_names(membership: Dict[str, Any]) -> List[str]:
    """Admin label, then named roles in array order, then the legacy role, deduplicated"""
    return RoleIndicators.from_membership(membership).names()


@dataclass
class UserInfo:
    user_id: str
    email: str = ''
    first_name: str = ''
    last_name: str = ''

    @classmethod
    def from_include(cls, user: Dict[str, Any]) -> Optional['UserInfo']:
        user_id = get_sys_id(user)
        if not user_id:
            return None
        return cls(
            user_id=user_id,
            email=user.get('email') or '',
            first_name=user.get('firstName') or '',
            last_name=user.get('lastName') or '',
        )

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class Team:
    team_id: str
    name: str

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> Optional['Team']:
        team_id = get_sys_id(item)
        if not team_id:
            return None
        # Unnamed teams are reported by id
        return cls(team_id=team_id, name=item.get('name') or team_id)


@dataclass
class PageFailure:
    url: str
    skip: int
    error: str


@dataclass
class PagedResult:
    items: List[Dict[str, Any]] = field(default_factory=list)
    users: Dict[str, UserInfo] = field(default_factory=dict)
    failures: List[PageFailure] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures


@dataclass
class TeamMemberships:
    user_teams: Dict[str, List[str]] = field(default_factory=dict)
    users: Dict[str, UserInfo] = field(default_factory=dict)
    teams: List[Team] = field(default_factory=list)
    failures: List[PageFailure] = field(default_factory=list)


@dataclass
class UserRecord:
    """One consolidated row of the export"""
    user_id: str
    email: str = ''
    name: str = ''
    org_roles: List[str] = field(default_factory=list)
    space_roles: List[str] = field(default_factory=list)
    teams: List[str] = field(default_factory=list)

    def fill_identity(self, info: Optional[UserInfo]) -> None:
        # First non-empty value wins; later side-tables only fill gaps
        if info is None:
            return
        if not self.email:
            self.email = info.email
        if not self.name:
            self.name = info.display_name

    def add_org_roles(self, names: List[str]) -> None:
        _append_unique(self.org_roles, names)

    def add_space_roles(self, names: List[str]) -> None:
        _append_unique(self.space_roles, names)

    def add_teams(self, names: List[str]) -> None:
        _append_unique(self.teams, names)

    def to_row(self) -> Dict[str, str]:
        return {
            'userId': self.user_id,
            'email': self.email,
            'name': self.name,
            'orgRoles': JOIN_SEPARATOR.join(self.org_roles),
            'spaceRoles': JOIN_SEPARATOR.join(self.space_roles),
            'teams': JOIN_SEPARATOR.join(self.teams),
        }
