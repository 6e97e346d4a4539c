from odyssea.shared.domain.trips.service import TripService

__all__ = ["TripService"]
