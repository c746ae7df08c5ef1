"""notrack — detect third-party trackers on a site and let visitors opt out."""

__version__ = "1.0.0"
