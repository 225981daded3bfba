from dealfinder.models.user import User
from dealfinder.models.business import Business
from dealfinder.models.promotion import Promotion
from dealfinder.models.analytic_event import AnalyticEvent
from dealfinder.models.refresh_token import RefreshToken
