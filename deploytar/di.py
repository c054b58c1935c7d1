# deploytar/di.py
from dataclasses import dataclass
from typing import Optional

from deploytar.config import Settings
from deploytar.services.extract import ArchiveExtractor
from deploytar.services.listing import ListingService
from deploytar.services.paths import PathResolver
from deploytar.services.upload import UploadService

@dataclass
class Container:
    settings: Settings
    resolver: PathResolver
    upload_service: UploadService
    listing_service: ListingService

def build_container(settings: Optional[Settings] = None) -> Container:
    s = settings or Settings()
    # Prefix is fixed here; its existence is still re-checked per request
    resolver = PathResolver(s.PATH_PREFIX)
    extractor = ArchiveExtractor(buffer_size=s.COPY_BUFFER_SIZE)

    upload = UploadService(resolver=resolver, extractor=extractor)
    listing = ListingService(resolver=resolver)

    return Container(s, resolver, upload, listing)
