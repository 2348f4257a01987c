"""
Formatting of DMP records for delivery to clients.

The hub's bookkeeping properties (the ``PK`` and ``SK`` keys and all properties whose names start with
``dmphub``) are internal and are removed, at every level of the document, before a record is returned.
"""
from collections.abc import Mapping
from typing import List, Iterable

from .record import DMPRecord, is_hub_property

def cleanse(data):
    """
    return a copy of the given JSON data with all of the hub bookkeeping properties removed
    """
    if isinstance(data, Mapping):
        return {k: cleanse(v) for k, v in data.items() if not is_hub_property(k)}
    if isinstance(data, (list, tuple)):
        return [cleanse(v) for v in data]
    return data

def format_response(status: int=200, records: Iterable=None, errors: List[str]=None,
                    total: int=0) -> dict:
    """
    assemble a response to a client request.
    :param int      status:  the HTTP-style status code for the response
    :param list    records:  the records to return, either as :py:class:`~dmphub.record.DMPRecord`
                             instances or as row dictionaries
    :param list[str] errors: error messages to include
    :param int       total:  the total number of records matching the request, if more than are
                             being returned
    :return: a dictionary with ``status`` and ``body`` properties; the body contains ``item_count``,
             ``items``, and, if there were errors, ``errors``.
    """
    items = []
    for rec in records or []:
        if isinstance(rec, DMPRecord):
            rec = rec.to_item()
        items.append(cleanse(rec))

    body = {
        "item_count": total or len(items),
        "items": items
    }
    if errors:
        body["errors"] = list(errors)
    return {"status": int(status), "body": body}
