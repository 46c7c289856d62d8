from .share_page import SharePage
from .page_stats import PageStats, PageStatCounter, PageDailyVisitor, PageVisitor, VisitDuration
from .annotation import Annotation, UserAuthor, GuestAuthor

__all__ = ['SharePage', 'PageStats', 'PageStatCounter', 'PageDailyVisitor', 'PageVisitor', 'VisitDuration',
           'Annotation', 'UserAuthor', 'GuestAuthor']
