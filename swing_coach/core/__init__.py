from .frame import JointFrame, JointPoint
from .smoother import SignalSmoother, SignalBank
