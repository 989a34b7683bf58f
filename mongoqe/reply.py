from .handlers.ids import to_portable_id


#: The key to put results under when the resource name is unknown
DEFAULT_RESOURCE_NAME = 'data'


def to_reply_format(result, resource_name=None, linked=None, id_field='_id'):
    """ Generate the reply for a query

    :param result: Usually a list of documents. A number for update and remove.
    :param resource_name: The name of the collection (the envelope's `on`)
    :param linked: Linked documents: {field: [documents]}
    :type linked: dict | None
    :param id_field: The identifier field to convert to a string
    :rtype: dict
    """
    if isinstance(result, list):
        result = map_ids(result, id_field)

    ret = {resource_name or DEFAULT_RESOURCE_NAME: result}
    if linked is not None:
        ret['linked'] = linked
    return ret


def map_ids(documents, id_field='_id'):
    """ Convert the native identifiers of every document to their portable string form

    The documents are modified in place.
    """
    for doc in documents:
        if id_field in doc:
            doc[id_field] = to_portable_id(doc[id_field])
    return documents
