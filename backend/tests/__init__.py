# Force SQLModel table registration at test discovery time
import league_scheduler.models  # noqa: F401
