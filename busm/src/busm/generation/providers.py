"""Faker-backed value providers for sample data."""

from typing import Any, Callable, Dict, List, Optional, Protocol

from faker import Faker

from busm.config.logging import get_logger

logger = get_logger(__name__)


class ValueProvider(Protocol):
    """Anything that can produce n plausible values for a field."""

    def sample(self, n: int, ctx=None) -> List[Any]:
        """
        Sample n values.

        Args:
            n: Number of values to generate
            ctx: Optional context (e.g., entity and field name)

        Returns:
            List of generated values
        """
        ...


class FakerProvider:
    """Value provider calling one Faker method."""

    def __init__(self, fk: Faker, field: str = "name", **kwargs):
        """
        Initialize Faker provider.

        Args:
            fk: Faker instance, seeded by the caller
            field: Faker method name (e.g., "email", "phone_number", "city")
            **kwargs: Arguments passed to the Faker method
        """
        if not hasattr(fk, field):
            raise ValueError(f"Faker field '{field}' not available")
        self.fk = fk
        self.field = field
        self.kwargs = kwargs

    def sample(self, n: int, ctx=None) -> List[Any]:
        method = getattr(self.fk, self.field)
        return [method(**self.kwargs) for _ in range(n)]


ProviderFactory = Callable[[Faker], ValueProvider]

DEFAULT_PROVIDERS: Dict[str, ProviderFactory] = {
    "faker.name": lambda fk: FakerProvider(fk, field="name"),
    "faker.first_name": lambda fk: FakerProvider(fk, field="first_name"),
    "faker.last_name": lambda fk: FakerProvider(fk, field="last_name"),
    "faker.company": lambda fk: FakerProvider(fk, field="company"),
    "faker.email": lambda fk: FakerProvider(fk, field="email"),
    "faker.phone_number": lambda fk: FakerProvider(fk, field="phone_number"),
    "faker.street_address": lambda fk: FakerProvider(fk, field="street_address"),
    "faker.city": lambda fk: FakerProvider(fk, field="city"),
    "faker.state_abbr": lambda fk: FakerProvider(fk, field="state_abbr"),
    "faker.postcode": lambda fk: FakerProvider(fk, field="postcode"),
    "faker.uuid4": lambda fk: FakerProvider(fk, field="uuid4"),
    "faker.sentence": lambda fk: FakerProvider(fk, field="sentence"),
}


class ProviderRegistry:
    """Named provider factories bound to one Faker instance."""

    def __init__(self, fk: Faker, factories: Optional[Dict[str, ProviderFactory]] = None):
        self.fk = fk
        self._factories = dict(DEFAULT_PROVIDERS if factories is None else factories)
        self._cache: Dict[str, ValueProvider] = {}

    def get(self, name: str) -> ValueProvider:
        """
        Get a provider instance by name.

        Raises:
            KeyError: If provider name is not found
        """
        if name not in self._factories:
            available = ", ".join(self.names())
            raise KeyError(f"Provider '{name}' not found. Available providers: {available}")
        if name not in self._cache:
            self._cache[name] = self._factories[name](self.fk)
        return self._cache[name]

    def register(self, name: str, factory: ProviderFactory) -> None:
        self._factories[name] = factory
        self._cache.pop(name, None)
        logger.debug(f"Registered provider: {name}")

    def names(self) -> List[str]:
        return sorted(self._factories)

    def one(self, name: str, ctx=None) -> Any:
        return self.get(name).sample(1, ctx)[0]
