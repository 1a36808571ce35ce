"""Network resources: allow lists, VPCs and private service endpoints."""

from typing import List, Optional

from pydantic import BaseModel


class AllowList(BaseModel):
    account_id: Optional[str] = None
    project_id: Optional[str] = None
    allow_list_id: Optional[str] = None
    allow_list_name: str
    allow_list_description: str = ""
    cidr_list: List[str]
    cluster_ids: List[str] = []             # computed: clusters using this list


class VpcRegionCidr(BaseModel):
    region: str
    cidr: Optional[str] = None


class Vpc(BaseModel):
    """Either global_cidr or region_cidr_info is set, never both."""

    account_id: Optional[str] = None
    project_id: Optional[str] = None
    vpc_id: Optional[str] = None
    name: str
    cloud: str
    global_cidr: Optional[str] = None
    region_cidr_info: Optional[List[VpcRegionCidr]] = None
    external_vpc_id: Optional[str] = None
    state: Optional[str] = None


class PrivateServiceEndpoint(BaseModel):
    account_id: Optional[str] = None
    project_id: Optional[str] = None
    cluster_id: str
    endpoint_id: Optional[str] = None
    region: str
    security_principals: List[str]
    service_name: Optional[str] = None
    availability_zones: List[str] = []
    state: Optional[str] = None
