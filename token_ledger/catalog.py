import json
from pathlib import Path
from typing import Iterable, Union

from pydantic import TypeAdapter

from .errors import ServiceNotFoundError
from .models import ServiceDescriptor


DEFAULT_SERVICES = [
    ServiceDescriptor(
        id=1, title="이력서 첨삭", cost=200, icon="file-text",
        description="AI가 당신의 이력서를 분석하고 개선점을 제안합니다.",
    ),
    ServiceDescriptor(
        id=2, title="심층 분석", cost=300, icon="bar-chart",
        description="당신의 커리어 경로를 심층 분석하고 발전 방향을 제시합니다.",
    ),
    ServiceDescriptor(
        id=3, title="합격 예측", cost=150, icon="briefcase",
        description="지원한 포지션에 대한 합격 가능성을 분석합니다.",
    ),
    ServiceDescriptor(
        id=4, title="맞춤형 추천", cost=250, icon="globe",
        description="당신에게 가장 적합한 직무와 기업을 추천합니다.",
    ),
]

_services_adapter = TypeAdapter(list[ServiceDescriptor])


class ServiceCatalog:
    """Read-only registry of redeemable services, kept in insertion order."""

    def __init__(self, services: Iterable[ServiceDescriptor]):
        self._services: dict[int, ServiceDescriptor] = {}
        for service in services:
            if service.id in self._services:
                raise ValueError(f"Duplicate service id {service.id} in catalog")
            self._services[service.id] = service

    @classmethod
    def default(cls) -> "ServiceCatalog":
        return cls(DEFAULT_SERVICES)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ServiceCatalog":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls(_services_adapter.validate_python(data))

    def list_services(self) -> list[ServiceDescriptor]:
        return list(self._services.values())

    def get_service(self, service_id: int) -> ServiceDescriptor:
        service = self._services.get(service_id)
        if service is None:
            raise ServiceNotFoundError(service_id)
        return service

    def __len__(self) -> int:
        return len(self._services)
