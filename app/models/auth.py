"""
Members and role-based access.

A member holds roles (member_roles); a role grants permission codenames
(role_permissions). Evaluation and caching live in
app.services.permission_service.
"""

from datetime import datetime, timezone

from app.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class Member(db.Model):
    """A person on the crew. Members propose levels; officers award them."""

    __tablename__ = "members"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    roles = db.relationship(
        "MemberRole",
        back_populates="member",
        foreign_keys="MemberRole.member_id",
        cascade="all, delete-orphan",
    )
    skill_levels = db.relationship(
        "MemberSkill", back_populates="member", lazy="dynamic", cascade="all, delete-orphan",
    )

    @property
    def role_names(self):
        return sorted(mr.role.name for mr in self.roles)

    def to_dict(self, include_roles=False):
        d = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_roles:
            d["roles"] = self.role_names
        return d

    def __repr__(self):
        return f"<Member {self.id} {self.email}>"


class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    label = db.Column(db.String(200))
    created_at = db.Column(db.DateTime, default=_utcnow)

    grants = db.relationship("RolePermission", back_populates="role", cascade="all, delete-orphan")

    @property
    def codenames(self):
        return {g.permission.codename for g in self.grants}

    def __repr__(self):
        return f"<Role {self.name}>"


class Permission(db.Model):
    """A permission codename such as ``training.proposal.review``."""

    __tablename__ = "permissions"

    id = db.Column(db.Integer, primary_key=True)
    codename = db.Column(db.String(100), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)

    @property
    def category(self):
        return self.codename.split(".", 1)[0]


class RolePermission(db.Model):
    __tablename__ = "role_permissions"

    role_id = db.Column(db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id = db.Column(
        db.Integer, db.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True,
    )

    role = db.relationship("Role", back_populates="grants")
    permission = db.relationship("Permission")


class MemberRole(db.Model):
    __tablename__ = "member_roles"

    member_id = db.Column(db.Integer, db.ForeignKey("members.id", ondelete="CASCADE"), primary_key=True)
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    granted_by_id = db.Column(db.Integer, db.ForeignKey("members.id"), nullable=True)
    granted_at = db.Column(db.DateTime, default=_utcnow)

    member = db.relationship("Member", back_populates="roles", foreign_keys=[member_id])
    role = db.relationship("Role")
