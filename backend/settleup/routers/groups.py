"""Groups: create, list, get, update, delete, add/remove members."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from settleup.database import get_db
from settleup.models import User, Group
from settleup.schemas import GroupCreate, GroupUpdate, GroupResponse, GroupAddMember, MemberInfo
from settleup.auth import get_current_user, get_member_group

router = APIRouter(prefix="/groups", tags=["groups"])


def _member_info(user: User) -> MemberInfo:
    return MemberInfo(id=user.id, name=user.name, email=user.email)


def _group_response(group: Group) -> GroupResponse:
    return GroupResponse(
        id=group.id,
        name=group.name,
        description=group.description,
        start_date=group.start_date,
        end_date=group.end_date,
        created_by_id=group.created_by_id,
        created_at=group.created_at,
        member_ids=[u.id for u in group.members],
        members=[_member_info(u) for u in group.members],
    )


def _check_dates(start_date, end_date) -> None:
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="End date cannot be before start date")


@router.get("", response_model=list[GroupResponse])
def list_groups(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    groups = (
        db.query(Group)
        .filter(Group.members.any(User.id == current_user.id))
        .order_by(Group.created_at.desc(), Group.id.desc())
        .all()
    )
    return [_group_response(g) for g in groups]


@router.post("", response_model=GroupResponse, status_code=201)
def create_group(
    data: GroupCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    _check_dates(data.start_date, data.end_date)
    members = [current_user]
    if data.member_ids:
        others = db.query(User).filter(User.id.in_(data.member_ids)).all()
        for u in others:
            if u not in members:
                members.append(u)
    group = Group(
        name=data.name,
        description=data.description,
        start_date=data.start_date,
        end_date=data.end_date,
        created_by_id=current_user.id,
    )
    group.members = members
    db.add(group)
    db.commit()
    db.refresh(group)
    return _group_response(group)


@router.get("/{group_id}", response_model=GroupResponse)
def get_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _group_response(get_member_group(db, group_id, current_user))


@router.patch("/{group_id}", response_model=GroupResponse)
def update_group(
    group_id: int,
    data: GroupUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = get_member_group(db, group_id, current_user)
    for field, value in data.model_dump(exclude_none=True).items():
        setattr(group, field, value)
    _check_dates(group.start_date, group.end_date)
    db.commit()
    db.refresh(group)
    return _group_response(group)


@router.delete("/{group_id}", status_code=204)
def delete_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = get_member_group(db, group_id, current_user)
    if group.created_by_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the group creator can delete it")
    db.delete(group)
    db.commit()


@router.post("/{group_id}/members", response_model=GroupResponse)
def add_group_member(
    group_id: int,
    data: GroupAddMember,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = get_member_group(db, group_id, current_user)
    user = db.query(User).filter(User.email == data.email.lower()).first()
    if not user:
        raise HTTPException(status_code=404, detail="No user found with that email")
    if user in group.members:
        raise HTTPException(status_code=400, detail="User already in group")
    group.members.append(user)
    db.commit()
    db.refresh(group)
    return _group_response(group)


@router.delete("/{group_id}/members/{user_id}", response_model=GroupResponse)
def remove_group_member(
    group_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = get_member_group(db, group_id, current_user)
    user = next((m for m in group.members if m.id == user_id), None)
    if not user:
        raise HTTPException(status_code=404, detail="User not in this group")
    if user.id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot remove yourself")
    # Their expenses and settlements would stop adding up without them.
    if any(user.id == e.payer_id or user in e.participants for e in group.expenses):
        raise HTTPException(status_code=400, detail="Member has expenses in this group")
    if any(user.id in (s.from_user_id, s.to_user_id) for s in group.settlements):
        raise HTTPException(status_code=400, detail="Member has settlements in this group")
    group.members.remove(user)
    db.commit()
    db.refresh(group)
    return _group_response(group)
