from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """
    Tüm istek/cevap şemalarının tabanı. JSON tarafında camelCase (lastMessageAt) kullanılır,
    istekler snake_case alan adlarıyla da kabul edilir.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)
