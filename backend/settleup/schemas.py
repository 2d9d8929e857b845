"""Pydantic schemas for request/response and for the balance engine's records."""
from datetime import date, datetime
from typing import Optional, Union

from pydantic import BaseModel, EmailStr, Field, model_validator

# Database ids are ints; the balance engine also takes string ids.
UserId = Union[int, str]


# ----- User -----
class UserBase(BaseModel):
    email: EmailStr
    name: str = Field(min_length=2, max_length=50)


class UserCreate(UserBase):
    password: str = Field(min_length=6)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(UserBase):
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class MemberInfo(BaseModel):
    id: int
    name: str
    email: EmailStr


# ----- Group -----
class GroupBase(BaseModel):
    name: str
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class GroupCreate(GroupBase):
    member_ids: list[int] = []


class GroupUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class GroupAddMember(BaseModel):
    email: EmailStr


class GroupResponse(GroupBase):
    id: int
    created_by_id: int
    created_at: Optional[datetime] = None
    member_ids: list[int] = []
    members: list[MemberInfo] = []

    class Config:
        from_attributes = True


# ----- Expense -----
EXPENSE_CATEGORIES = [
    "food",
    "transport",
    "accommodation",
    "entertainment",
    "shopping",
    "utilities",
    "health",
    "other",
]


class ExpenseBase(BaseModel):
    amount: float = Field(allow_inf_nan=False)
    description: str
    participant_ids: list[int]


class ExpenseCreate(ExpenseBase):
    group_id: int
    payer_id: Optional[int] = None
    category: str = "other"
    custom_category: Optional[str] = None
    date: Optional[datetime] = None


class ExpenseUpdate(BaseModel):
    amount: Optional[float] = Field(None, allow_inf_nan=False)
    description: Optional[str] = None
    participant_ids: Optional[list[int]] = None
    category: Optional[str] = None
    custom_category: Optional[str] = None
    date: Optional[datetime] = None


class ExpenseResponse(ExpenseBase):
    id: int
    group_id: int
    payer_id: int
    category: str
    custom_category: Optional[str] = None
    date: Optional[datetime] = None
    created_at: Optional[datetime] = None


# ----- Settlement (recorded payment) -----
class SettlementCreate(BaseModel):
    group_id: int
    to_user_id: int
    amount: float = Field(allow_inf_nan=False)
    # Defaults to the caller.
    from_user_id: Optional[int] = None
    description: Optional[str] = Field(None, max_length=200)
    date: Optional[datetime] = None


class SettlementResponse(BaseModel):
    id: int
    group_id: int
    from_user_id: int
    to_user_id: int
    amount: float
    description: str
    date: datetime
    created_by_id: int

    class Config:
        from_attributes = True


class SettlementRecorded(BaseModel):
    message: str = "Settlement recorded successfully"
    settlement: SettlementResponse
    warning: Optional[str] = None


# ----- Balance engine -----
class ExpenseRecord(BaseModel):
    """An expense resolved to its payer and equal-split participants."""

    id: Optional[Union[int, str]] = None
    amount: float = Field(gt=0, allow_inf_nan=False)
    payer_id: UserId
    participant_ids: list[UserId]


class SettlementRecord(BaseModel):
    """A payment already made from one member to another."""

    id: Optional[Union[int, str]] = None
    from_user_id: UserId
    to_user_id: UserId
    amount: float = Field(gt=0, allow_inf_nan=False)
    date: Optional[datetime] = None

    @model_validator(mode="after")
    def check_distinct_parties(self):
        if self.from_user_id == self.to_user_id:
            raise ValueError("Cannot create settlement from user to themselves")
        return self


class SuggestedTransaction(BaseModel):
    from_user_id: UserId
    to_user_id: UserId
    amount: float
    description: str
    from_user_name: Optional[str] = None
    to_user_name: Optional[str] = None


class BalanceEntry(BaseModel):
    from_user_id: UserId
    from_user_name: str
    to_user_id: UserId
    to_user_name: str
    amount: float
    description: str


class BalanceSummary(BaseModel):
    total_outstanding: float = 0.0
    total_settlements: int = 0
    suggested_transactions: int = 0


class GroupBalanceReport(BaseModel):
    balances: list[BalanceEntry] = []
    suggestions: list[SuggestedTransaction] = []
    summary: BalanceSummary = BalanceSummary()


class GroupBalances(GroupBalanceReport):
    group_id: int
    group_name: str
    members: list[MemberInfo] = []


class SettlementValidation(BaseModel):
    is_valid: bool
    reason: Optional[str] = None
    warning: Optional[str] = None
    # What from_user currently owes to_user.
    outstanding: float = 0.0


# ----- Dashboard -----
class DashboardStats(BaseModel):
    total_expenses: float
    expense_count: int
    category_totals: dict[str, float]
    member_spending: list[dict]
    your_balance: float
