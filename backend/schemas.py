from datetime import datetime
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for every request/response body: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Dollar amounts coming in from clients; NaN and infinities are rejected here
Amount = Annotated[float, Field(allow_inf_nan=False)]


class UserContext(ApiModel):
    """Body of actions that only need to know who the caller is."""
    user_id: int


# Users
class UserCreate(ApiModel):
    name: str
    email: EmailStr
    phone: Optional[str] = None
    role: Literal["user", "parent"] = "user"

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()


class User(ApiModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: str


# Friends
class FriendAdd(ApiModel):
    user_id: int
    email: Optional[str] = None
    phone: Optional[str] = None


class FriendRemove(ApiModel):
    user_id: int
    friend_id: int


class FriendReminder(ApiModel):
    user_id: int
    friend_id: int


class FriendAddResponse(ApiModel):
    success: bool = True
    friend: User


class FriendsResponse(ApiModel):
    success: bool = True
    friends: list[User]


class ReminderResponse(ApiModel):
    success: bool = True
    email_sent: bool
    amount: float


# Expenses
class CustomSplit(ApiModel):
    user_id: int
    amount: Amount


class ExpenseCreate(ApiModel):
    user_id: int
    amount: Amount
    category: str = "other"
    subcategory: Optional[str] = None
    description: str = ""
    participants: list[int] = []
    split_type: str = "equal"  # equal, custom
    custom_splits: Optional[list[CustomSplit]] = None
    group_id: Optional[int] = None


class ExpenseSplit(ApiModel):
    user_id: int
    amount: float
    paid: bool


class Expense(ApiModel):
    id: int
    description: str
    total_amount: float
    category: str
    subcategory: Optional[str] = None
    created_by: int
    group_id: Optional[int] = None
    split_type: str
    created_at: datetime
    splits: list[ExpenseSplit]


class ExpenseResponse(ApiModel):
    success: bool = True
    expense: Expense


class PayShareRequest(ApiModel):
    user_id: int
    split_user_id: Optional[int] = None


class SplitDetail(ApiModel):
    user_id: int
    user_name: str
    amount: float
    percentage: float
    paid: bool


class PayShareResponse(ApiModel):
    success: bool = True
    splits: list[SplitDetail]


class HistorySplit(ApiModel):
    user_id: int
    user_name: str
    amount: float
    paid: bool


class HistoryExpense(ApiModel):
    id: int
    description: str
    category: str
    subcategory: Optional[str] = None
    total_amount: float
    user_amount: float
    paid: bool
    created_at: datetime
    created_by: int
    created_by_name: str
    group_id: Optional[int] = None
    group_name: Optional[str] = None
    splits: list[HistorySplit]


class HistoryResponse(ApiModel):
    success: bool = True
    expenses: list[HistoryExpense]


# Balances
class BalanceExpense(ApiModel):
    expense_id: int
    description: str
    amount: float
    type: str  # owes_you, you_owe
    date: str
    category: str


class FriendBalance(ApiModel):
    user_id: int
    user_name: str
    owes_you: float
    you_owe: float
    net_balance: float  # Positive means they owe you
    expenses: list[BalanceExpense]


class BalanceSummary(ApiModel):
    total_owed_to_you: float
    total_you_owe: float
    net_balance: float
    friend_count: int


class BalancesResponse(ApiModel):
    success: bool = True
    balances: list[FriendBalance]
    summary: BalanceSummary


# Groups
class GroupCreate(ApiModel):
    user_id: int
    name: str
    member_ids: list[int] = []

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Group name cannot be empty")
        return v.strip()


class GroupMemberAdd(ApiModel):
    user_id: int
    member_id: int


class GroupMember(ApiModel):
    user_id: int
    user_name: str
    user_email: str
    joined_at: datetime


class Group(ApiModel):
    id: int
    name: str
    created_by: int
    created_by_name: str
    created_at: datetime
    members: list[GroupMember]
    member_count: int
    expense_count: int = 0
    total_expenses: float = 0


class GroupResponse(ApiModel):
    success: bool = True
    group: Group


class GroupsResponse(ApiModel):
    success: bool = True
    groups: list[Group]
    count: int


class GroupMemberSelection(ApiModel):
    user_id: int
    selected: bool = True
    amount: Optional[Amount] = None


class GroupExpenseCreate(ApiModel):
    user_id: int
    amount: Amount
    description: str = ""
    category: str = "other"
    subcategory: Optional[str] = None
    split_type: str = "equal"
    members: list[GroupMemberSelection]


class GroupExpense(ApiModel):
    id: int
    description: str
    amount: float
    category: str
    created_by: int
    created_by_name: str
    created_at: datetime
    splits: list[HistorySplit]


class GroupExpensesResponse(ApiModel):
    success: bool = True
    expenses: list[GroupExpense]


# Analytics
class SubcategorySpending(ApiModel):
    subcategory: str
    total: float
    transaction_count: int


class CategorySpending(ApiModel):
    category: str
    total: float
    transaction_count: int
    breakdown: list[SubcategorySpending]


class CategorySpendingResponse(ApiModel):
    success: bool = True
    timeframe: str
    view: str
    categories: list[CategorySpending]


# Notifications
class Notification(ApiModel):
    id: int
    type: str
    message: str
    data: Optional[dict] = None
    created_at: datetime
    is_read: bool


class NotificationsResponse(ApiModel):
    success: bool = True
    notifications: list[Notification]
    unread_count: int


# Dashboard
class DashboardResponse(ApiModel):
    success: bool = True
    expenses: list[HistoryExpense]
    groups: list[Group]
    balances: list[FriendBalance]
    summary: BalanceSummary


class SuccessResponse(ApiModel):
    success: bool = True
    message: Optional[str] = None
