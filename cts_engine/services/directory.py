"""
CTS Staff Directory

Static roster of internal staff plus the clients who registered through
the session layer. The engine only reads it, except for client
registration and profile (email/phone) updates.
"""

import logging
from typing import Dict, Iterable, List, Optional

from ..models.ticket import (
    Department,
    DepartmentAssignment,
    MarketingBranch,
    Role,
    User,
)
from .errors import NotFoundError, ValidationError
from .identifiers import IdGenerator
from .validation import normalize_phone, require_text

logger = logging.getLogger(__name__)


DEFAULT_ROSTER: List[User] = [
    User(id="s1", name="Sarah Admin", email="sarah@cts.com", phone="+10000000001",
         role=Role.COMPLIANCE_MANAGER),
    User(id="s2", name="Amit Manager", email="amit@cts.com", phone="+10000000002",
         role=Role.DEPT_MANAGER, department=Department.MARKETING, branch=MarketingBranch.AHM),
    User(id="s3", name="Lina Manager", email="lina@cts.com", phone="+10000000003",
         role=Role.DEPT_MANAGER, department=Department.MARKETING, branch=MarketingBranch.LKO),
    User(id="s4", name="Kevin Tech", email="kevin@cts.com", phone="+10000000004",
         role=Role.DEPT_MANAGER, department=Department.TECHNICAL),
    User(id="s5", name="Raj TeamLead", email="raj@cts.com", phone="+10000000005",
         role=Role.TEAM_LEAD, department=Department.TECHNICAL),
    User(id="s6", name="Elena Manager", email="elena@cts.com", phone="+10000000006",
         role=Role.DEPT_MANAGER, department=Department.RESUME),
    User(id="s7", name="Sam Lead", email="sam@cts.com", phone="+10000000007",
         role=Role.TEAM_LEAD, department=Department.RESUME),
    User(id="s8", name="Victor Manager", email="victor@cts.com", phone="+10000000008",
         role=Role.DEPT_MANAGER, department=Department.SALES),
    User(id="s9", name="John Lead", email="john@cts.com", phone="+10000000009",
         role=Role.TEAM_LEAD, department=Department.SALES),
]


class StaffDirectory:
    """
    Lookup of every known actor.

    Staff come from the roster; clients are added by register_client().
    """

    CLIENT_PREFIX = "CLI"

    def __init__(
        self,
        ids: IdGenerator,
        roster: Optional[Iterable[User]] = None,
        phone_country_code: str = "+1",
        phone_digits: int = 10
    ):
        self.ids = ids
        self.phone_country_code = phone_country_code
        self.phone_digits = phone_digits
        self._users: Dict[str, User] = {}
        for user in roster or []:
            self._users[user.id] = user.model_copy()

    def find(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    def get(self, user_id: str) -> User:
        user = self.find(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found.")
        return user

    def staff(self) -> List[User]:
        return [u.model_copy() for u in self._users.values() if u.role != Role.CLIENT]

    def team_leads(self, department: Department) -> List[User]:
        """Team leads who can take an assignment of this department."""
        return [
            u for u in self.staff()
            if u.role == Role.TEAM_LEAD and u.department == department
        ]

    def require_team_lead(self, team_lead_id: str, assignment: DepartmentAssignment) -> User:
        """
        Resolve a team lead for an assignment.

        Raises NotFoundError for unknown ids, ValidationError when the user
        is not a team lead of the assignment's department.
        """
        user = self.get(team_lead_id)
        if user.role != Role.TEAM_LEAD:
            raise ValidationError(f"{user.name} is not a team lead.")
        if user.department != assignment.department:
            raise ValidationError(
                f"{user.name} does not lead the {assignment.department.value} department."
            )
        return user

    def normalize_phone(self, phone: str) -> str:
        return normalize_phone(phone, self.phone_country_code, self.phone_digits)

    def register_client(self, name: str, email: str, phone: str) -> User:
        """Sign-up for a new client; phone stored normalized."""
        user = User(
            id=self.ids.next_id(self.CLIENT_PREFIX),
            name=require_text(name, "name"),
            email=require_text(email, "email"),
            phone=self.normalize_phone(phone),
            role=Role.CLIENT,
        )
        self._users[user.id] = user
        logger.info("Registered client %s", user.id)
        return user.model_copy()

    def update_profile(
        self,
        user_id: str,
        email: Optional[str] = None,
        phone: Optional[str] = None
    ) -> User:
        """
        Email and phone are the only mutable user fields.

        Ticket contact snapshots are NOT touched.
        """
        user = self.get(user_id)
        updates = {}
        if email is not None:
            updates["email"] = require_text(email, "email")
        if phone is not None:
            updates["phone"] = self.normalize_phone(phone)
        updated = user.model_copy(update=updates)
        self._users[user_id] = updated
        return updated.model_copy()
