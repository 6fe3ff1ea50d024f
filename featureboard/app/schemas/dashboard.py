from pydantic import BaseModel


class DashboardStats(BaseModel):
    total_boards: int
    total_requests: int
    total_upvotes: int
    active_boards: int
