from .user import User, UserCreate, TokenPayload
from .auth import AuthResponse, AuthTokensResponse, EmailPasswordRequest, LogoutRequest, RefreshTokenRequest, UserInfo
from .visit import PetSummary, VisitResponse, ReminderEligibilityResponse
from .dashboard import DashboardStats, ReminderUsage, SubscriptionStatus
