from eauction.models.user import User
from eauction.models.auction import Auction, AuctionBidder
from eauction.models.bid import Bid
from eauction.models.result import AuctionResult

__all__ = ["User", "Auction", "AuctionBidder", "Bid", "AuctionResult"]
