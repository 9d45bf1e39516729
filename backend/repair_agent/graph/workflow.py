from langgraph.graph import StateGraph, END

from repair_agent.config import settings
from repair_agent.graph.state import RunState
from repair_agent.graph.nodes import (
    setup_node, analyze_node, test_node, fix_node, publish_node
)
from repair_agent.models import FinalStatus


def route_after_test(state: RunState):
    """Decides next step after testing: publish (success/budget spent) or fix (failure)."""
    if state.get("final_status") == FinalStatus.PASSED.value:
        return "publish"

    if state.get("iterations", 0) >= settings.max_iterations:
        return "publish"

    return "fix"


def build_workflow() -> StateGraph:
    workflow = StateGraph(RunState)

    # Add nodes
    workflow.add_node("setup", setup_node)
    workflow.add_node("analyze", analyze_node)
    workflow.add_node("test", test_node)
    workflow.add_node("fix", fix_node)
    workflow.add_node("publish", publish_node)

    # Set entry point
    workflow.set_entry_point("setup")

    # Add standard edges
    workflow.add_edge("setup", "analyze")
    workflow.add_edge("analyze", "test")
    workflow.add_edge("fix", "test")
    workflow.add_edge("publish", END)

    # Add conditional edges
    workflow.add_conditional_edges(
        "test",
        route_after_test,
        {
            "publish": "publish",
            "fix": "fix"
        }
    )
    return workflow


# Compile the graph
agent_graph = build_workflow().compile()
