"""File management procedures. All admin-only except the per-project listing."""

from app.rpc.router import Router, ADMIN
from services.file_service import FileService
from validators import ID, STRING, INT, OBJECT, list_of

PAGING = {'limit': INT, 'offset': INT}

router = Router('files')


def _service(ctx) -> FileService:
    return FileService(ctx.session, ctx.user, storage=ctx.storage)


@router.query('getAllFiles', access=ADMIN, schema=dict(
    PAGING, category=STRING, sortBy=STRING, sortOrder=STRING, search=STRING, projectId=ID,
))
def get_all_files(ctx, input):
    return _service(ctx).get_all_files(
        category=input.get('category', 'all'),
        sort_by=input.get('sortBy', 'date'),
        sort_order=input.get('sortOrder', 'desc'),
        search=input.get('search'),
        project_id=input.get('projectId'),
        limit=input.get('limit', 50),
        offset=input.get('offset', 0)
    )


@router.query('getFilesByProject', schema=dict(PAGING, projectId=ID))
def get_files_by_project(ctx, input):
    return _service(ctx).get_files_by_project(
        input.get('projectId'), limit=input.get('limit', 20), offset=input.get('offset', 0)
    )


@router.mutation('deleteFile', access=ADMIN, schema={'fileId': ID, 'source': STRING})
def delete_file(ctx, input):
    return _service(ctx).delete_file(input.get('fileId'), input.get('source'))


@router.mutation('bulkDelete', access=ADMIN, schema={'files': list_of(OBJECT)})
def bulk_delete(ctx, input):
    return _service(ctx).bulk_delete(input.get('files'))


@router.query('getFileStatistics', access=ADMIN)
def get_file_statistics(ctx, input):
    return _service(ctx).get_file_statistics()


@router.mutation('shareFileWithProject', access=ADMIN, schema={
    'fileId': ID, 'source': STRING, 'targetProjectId': ID, 'message': STRING,
})
def share_file_with_project(ctx, input):
    return _service(ctx).share_file_with_project(
        input.get('fileId'), input.get('source'), input.get('targetProjectId'), message=input.get('message')
    )
