from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from pos.models import ServiceCategory
from pos.services.catalog import list_active_services


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def services(request):
    """Active service catalog, grouped by category then name."""
    category = request.query_params.get('category')
    if category and category not in ServiceCategory.values:
        return Response({'ok': False, 'error': {'code': 'validation_error', 'message': 'Unknown category'}}, status=400)
    return Response({'ok': True, 'items': list_active_services(category)})
