from odyssea.shared.domain.profiles.service import UserProfileService

__all__ = ["UserProfileService"]
