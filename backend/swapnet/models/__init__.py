from .models import BarterRequest
from .models import Connection
from .models import FeedComment
from .models import FeedPost
from .models import Message
from .models import User

__all__ = ["User", "Connection", "BarterRequest", "FeedPost", "FeedComment", "Message"]
