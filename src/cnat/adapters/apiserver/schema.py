"""Wire models for the API server's ``At`` and ``Pod`` resources."""

from __future__ import annotations

import logging
import threading
from datetime import datetime  # noqa: TC003
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

log = logging.getLogger(__name__)


class ApiBaseModel(BaseModel):
    """Accept camelCase keys, emit them with ``by_alias=True``, keep unknown ones."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)
    _logged_extra_keys: ClassVar[set[str]] = set()
    _logged_extra_keys_lock: ClassVar[threading.Lock] = threading.Lock()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        keys = {f"{type(self).__name__}.{key}" for key in extras}
        with self._logged_extra_keys_lock:
            new_keys = keys.difference(self._logged_extra_keys)
            self._logged_extra_keys.update(new_keys)
        if not new_keys:
            return
        log.debug("API server payload: unmodeled keys: %s", ", ".join(sorted(new_keys)))


class OwnerReferenceModel(ApiBaseModel):
    api_version: str = Field(alias="apiVersion")
    kind: str
    name: str
    uid: str
    controller: bool | None = None
    block_owner_deletion: bool | None = Field(default=None, alias="blockOwnerDeletion")


class ObjectMetaModel(ApiBaseModel):
    name: str
    namespace: str | None = None
    uid: str | None = None
    resource_version: str | None = Field(default=None, alias="resourceVersion")
    creation_timestamp: datetime | None = Field(default=None, alias="creationTimestamp")
    labels: dict[str, str] | None = None
    owner_references: list[OwnerReferenceModel] | None = Field(
        default=None, alias="ownerReferences"
    )


class ListMetaModel(ApiBaseModel):
    resource_version: str | None = Field(default=None, alias="resourceVersion")


class AtSpecModel(ApiBaseModel):
    schedule: str = ""
    command: str = ""


class AtStatusModel(ApiBaseModel):
    phase: str = ""


class AtModel(ApiBaseModel):
    api_version: str | None = Field(default=None, alias="apiVersion")
    kind: str = "At"
    metadata: ObjectMetaModel
    spec: AtSpecModel = Field(default_factory=AtSpecModel)
    status: AtStatusModel = Field(default_factory=AtStatusModel)


class AtListModel(ApiBaseModel):
    api_version: str | None = Field(default=None, alias="apiVersion")
    kind: str | None = None
    metadata: ListMetaModel = Field(default_factory=ListMetaModel)
    items: list[AtModel] = Field(default_factory=list[AtModel])


class ContainerModel(ApiBaseModel):
    name: str
    image: str
    command: list[str] = Field(default_factory=list[str])


class PodSpecModel(ApiBaseModel):
    containers: list[ContainerModel]
    restart_policy: str | None = Field(default=None, alias="restartPolicy")


class PodStatusModel(ApiBaseModel):
    phase: str | None = None
    reason: str | None = None
    message: str | None = None


class PodModel(ApiBaseModel):
    api_version: str = Field(default="v1", alias="apiVersion")
    kind: str = "Pod"
    metadata: ObjectMetaModel
    spec: PodSpecModel
    status: PodStatusModel | None = None


class StatusModel(ApiBaseModel):
    """Kubernetes ``Status`` body returned with error responses."""

    kind: str | None = None
    status: str | None = None
    message: str | None = None
    reason: str | None = None
    code: int | None = None
