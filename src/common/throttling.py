from ninja_extra.throttling import AnonRateThrottle, UserRateThrottle


class AnonDefaultThrottle(AnonRateThrottle):
    rate = "60/min"


class UserDefaultThrottle(UserRateThrottle):
    rate = "100/min"


class WriteThrottle(UserRateThrottle):
    rate = "100/min"


class ClaimThrottle(UserRateThrottle):
    rate = "30/min"


class DocumentUploadThrottle(UserRateThrottle):
    rate = "60/hour"


class MediaValidationThrottle(AnonRateThrottle):
    rate = "1000/min"
