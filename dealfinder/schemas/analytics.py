from dealfinder.schemas.common import ApiModel


class DashboardStatsOut(ApiModel):
    total_users: int
    new_users: int
    total_businesses: int
    new_businesses: int
    pending_businesses: int
    total_promotions: int
    new_promotions: int
    active_promotions: int
    total_clicks: int
    total_impressions: int
    average_conversion_rate: float


class DailyAnalyticsOut(ApiModel):
    date: str
    clicks: int
    views: int
    searches: int
    conversion_rate: float


class CategoryStatOut(ApiModel):
    category: str
    count: int
    total_clicks: int
    total_impressions: int


class TopBusinessOut(ApiModel):
    id: str
    name: str
    category: str
    total_clicks: int
    total_impressions: int
    total_promotions: int
    conversion_rate: float


class AdminAnalyticsOut(ApiModel):
    daily_analytics: list[DailyAnalyticsOut]
    category_distribution: list[CategoryStatOut]
    top_businesses: list[TopBusinessOut]


class BusinessAnalyticsSummaryOut(ApiModel):
    total_promotions: int
    active_promotions: int
    total_clicks: int
    total_impressions: int
    conversion_rate: float


class BusinessAnalyticsOut(ApiModel):
    summary: BusinessAnalyticsSummaryOut
    daily_analytics: list[DailyAnalyticsOut]
