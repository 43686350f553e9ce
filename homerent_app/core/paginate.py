from pydantic import BaseModel


class PaginatePage:
    max_per_page = 100

    def clamp(self, page: int, per_page: int) -> tuple[int, int]:
        page = max(1, int(page or 1))
        per_page = min(max(1, int(per_page or 20)), self.max_per_page)
        return page, per_page

    def envelope(self, items: list[BaseModel], page: int, per_page: int) -> dict:
        return {
            "page": page,
            "per_page": per_page,
            "count": len(items),
            "items": [i.model_dump(mode="json") for i in items],
        }
