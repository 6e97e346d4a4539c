from odyssea.shared.domain.places.service import PlacesService

__all__ = ["PlacesService"]
